# rukpak

A library for content bundles. A content bundle is a tree of manifest files
that travels as a gzipped tar archive. The library stores, serves, unpacks and
validates these bundles.

Cluster objects such as bundles, configmaps and secrets are handled as plain
mappings, shaped as the Kubernetes API returns them. The library never talks
to a cluster itself. Wherever it needs to read or write an object, you pass in
a callable that does the work.

## Installation

```
pip install rukpak
```

To run the tests, install the `test` extra and run pytest:

```
pip install "rukpak[test]"
pytest
```

## Modules

### `rukpak.bundlefs`: read-only file trees

Paths are slash-separated and relative. `"."` is the root.

Every file tree has these methods:
- `read_file`
- `is_dir`
- `list_dir`, which returns the names in sorted order
- `walk`, which yields `(path, MapFile)` pairs depth first

The file trees are:
- `MapFS` is an in-memory dict from paths to `MapFile(data, mode, mtime)` entries. The parent directories of stored paths exist implicitly.
- `DirFS(root)` reads a directory on disk and does not follow symlinks while walking.
- `FilesOnlyFilesystem(fs)` exposes only the regular files of another tree. Directories, symlinks and special files are reported as missing.
- `BaseDirFS(fsys, base_dir)` presents a tree as a single directory under the root.
- `ensure_base_dir_fs(fsys, default_base_dir)` checks the root of `fsys`:
  - If the root holds exactly one directory, it returns `fsys` unchanged.
  - Otherwise it wraps `fsys` in `BaseDirFS`.
  - A `default_base_dir` with more than one path segment raises `ValueError`.

### `rukpak.tarball`: archives

- `fs_to_tar_gz(stream, fsys)` writes a tree as a gzipped tar archive.
  - Symlinks are skipped.
  - UID, GID, user name and group name are cleared.
- `tar_gz_to_fs(stream)` reads an archive back into a `MapFS`.
  - It keeps directories and regular files.
  - It rejects paths that would escape the root.

### `rukpak.labels`: label keys and adoption

This module defines the label keys (`CORE_OWNER_KIND_KEY`, `CORE_OWNER_NAME_KEY`, `CORE_BUNDLE_TEMPLATE_HASH_KEY`) and the defaults (`DEFAULT_SYSTEM_NAMESPACE` and others).

`adopt_object(obj, system_namespace, bundle_deployment_name)` sets annotations and labels on an object so that the named bundle deployment can adopt it. It changes the object in place.

### `rukpak.version`: build information

`version_string(BuildInfo(settings))` formats the revision, commit date and working-tree state from settings such as `vcs.revision`, `vcs.time` and `vcs.modified`. A value that is missing is reported as `"unknown"`.

### `rukpak.bundles`: matching bundles to templates

- `generate_template_hash(template)` returns a short hash that is safe to use in names. It is built on `deep_hash_object`, a 32-bit FNV-1a hash over a canonical JSON dump.
- `generate_bundle_name(bd_name, template_hash)` builds a bundle name from a deployment name and a template hash.
- `check_desired_bundle_template` compares a bundle's template-hash label with a template.
- `check_existing_bundles_match_template` returns a copy of the first bundle that matches a template, or `None`.
- `sort_bundles_by_creation` sorts bundles in place, oldest first.
- `merge_maps` merges label maps.
- `pod_namespace` reads the pod namespace file. If the file cannot be read, it returns the default system namespace.
- `bundle_label_selector` and `bundle_deployment_label_selector` return label-selector dicts.
- `MaxGeneratedLimitError` is an exception class. `MAX_GENERATED_BUNDLE_LIMIT` is the limit it refers to.

### `rukpak.storage`, `rukpak.localdir`, `rukpak.httpstore`: storing bundles

- `LocalDirectory(root_directory, url)` stores each bundle as `<name>.tgz` and provides `load`, `store`, `delete` and `url_for`.
  - Deleting a bundle that is not stored is not an error.
  - An instance is also a WSGI application that serves the stored archives under the path of `url`.
- `HTTPStorage(insecure_skip_verify=..., root_cas=..., bearer_token=..., timeout=...)` loads a bundle from its `status.contentURL`.
  - `root_cas` is the path of a PEM file.
  - A response other than 200 raises `requests.HTTPError`.
- `with_fallback_loader(storage, fallback)` returns a storage that tries `fallback` whenever loading from `storage` fails.

### `rukpak.unpacker`, `rukpak.configmaps`, `rukpak.remote`: unpacking bundle sources

Each source's `unpack(bundle)` returns a `Result` with these fields:
- `state`: `State.PENDING`, `State.UNPACKING` or `State.UNPACKED`
- `bundle`: the file tree
- `resolved_source`
- `message`

Failures raise `UnpackError`.

The sources are:
- `ConfigMapsSource(reader, config_map_namespace)` builds the tree from the `data` and `binaryData` of the configmaps a bundle references. The same path coming from two different configmaps is an error.
- `UploadSource(base_download_url, bearer_token=...)` fetches `<base>/uploads/<name>.tgz`. A 404 response is reported as pending.
- `HTTPSource(reader, secret_namespace)` fetches `spec.source.http.url`.
  - It can use basic-auth credentials from a secret.
  - It can skip TLS verification.
- `CompositeUnpacker(sources)` dispatches to a source by the bundle's `spec.source.type`.

### `rukpak.webhook`: admission checks

Both validators raise `ValidationError` when they reject a request.

- `BundleValidator(get_configmap, system_namespace)` checks bundles on create and update:
  - the source's settings must be present for its type;
  - paths may not lead outside the root;
  - referenced configmaps must be immutable;
  - on update, `spec` may not change.
- `ConfigMapValidator(list_bundles)` protects configmaps that bundles use:
  - a mutable configmap that a bundle references cannot be created;
  - a configmap that any bundle uses cannot be deleted.

### `rukpak.uploadmgr`: the upload handler

`UploadHandler(get_bundle, update_status, storage_dir)` is a WSGI application for `GET` and `PUT` on `/uploads/<name>.tgz`.

`PUT` stores the archive and answers as follows:

| Response | When |
| --- | --- |
| 201 | The content was new or changed. The handler marks the bundle `Pending`, with an `Unpacked=False` condition, through `update_status`. Conflicts there are retried. |
| 204 | The content is identical to what is already stored. |
| 409 | The bundle does not have an `upload` source, or it has already been unpacked. |

`get` and `put` can also be called directly. They return an `UploadResponse`.

`bundle_path(base_dir, bundle_name)` gives the path of a stored archive.

## Example

```python
import io

from rukpak.bundlefs import MapFS, MapFile
from rukpak.tarball import fs_to_tar_gz, tar_gz_to_fs

tree = MapFS({"manifests/deployment.yaml": MapFile(b"kind: Deployment\n")})
buf = io.BytesIO()
fs_to_tar_gz(buf, tree)
buf.seek(0)
restored = tar_gz_to_fs(buf)
assert restored.read_file("manifests/deployment.yaml") == b"kind: Deployment\n"
```

## What this package does not do

- It has no Kubernetes client and no controllers. Reading bundles, configmaps and secrets, and writing bundle status, is done by the callables you pass in.
- It has no source for container images or git repositories. Only configmap, upload and HTTP sources are provided.
- It does not install, provision or garbage-collect bundle content in a cluster.
- It has no command-line tool.
- It does not port-forward or upload bundles from a client machine.
- It starts no HTTP server of its own. `LocalDirectory` and `UploadHandler` are WSGI applications for you to mount in a server of your choice.