# ctimeta

A library for working with CTI metadata: typed entities (types and
instances), a registry that keeps identifiers unique, conversion of raw
"untyped" entity records into typed ones, and the building blocks of a local
package cache whose packages are fetched from git repositories.

## Install

```
pip install ctimeta
```

For running the tests:

```
pip install "ctimeta[test]"
pytest
```

## Identifiers

```python
from ctimeta.utils import get_parent_cti, get_base_cti

get_parent_cti("cti.v.a.parent.v1.0~v.a.child.v1.0")  # "cti.v.a.parent.v1.0"
get_parent_cti("cti.v.a.parent.v1.0")                  # "" (no direct parent)
get_base_cti("cti.v.a.parent.v1.0~v.a.child.v1.0")    # "cti.v.a.parent.v1.0"
```

## Entities (`ctimeta.entity`)

```python
from ctimeta.entity import new_entity_type, new_entity_instance

parent = new_entity_type("cti.v.a.parent.v1.0", {"type": "object"}, None)
parent.final = False                     # new types are final and public
parent.traits = {"color": "red", "size": 1}

child = new_entity_type("cti.v.a.parent.v1.0~v.a.child.v1.0", {"type": "object"}, None)
child.traits = {"color": "blue"}
child.set_parent(parent)                 # ValueError if the parent is final

child.is_a(parent)                       # True: identifier starts with the parent's
child.is_child_of(parent)                # True: parent is the direct parent
child.get_merged_traits()                # {"color": "blue", "size": 1}, cached
child.reset_merged_traits()              # drop the cache

item = new_entity_instance("cti.v.a.parent.v1.0~v.a.child.v1.0~v.a.item.v1.0", {"x": 1})
item.set_parent(child)                   # instances may have a final parent
item.get_raw_values()                    # b'{"x":1}', cached
```

- `Entity` holds the common fields (`cti`, `final`, `access`, `resilient`,
  `display_name`, `description`, `dictionaries`, `annotations`, `parent`).
  `AccessModifier` has `PUBLIC`, `PROTECTED` and `PRIVATE`.
- `EntityType` adds `schema`, `traits`, `traits_schema`,
  `traits_annotations` and source maps; `find_traits_schema_in_chain()`
  and `find_entity_type_by_predicate_in_chain()` walk up the parents;
  `get_raw_schema()` and `get_raw_traits()` return cached JSON bytes.
- `EntityInstance` adds `values` and an `InstanceSourceMap`.
- `replace_pointer(src)` copies every field of another entity of the same
  class and raises `TypeError` otherwise.
- `sort_entities()` returns entities ordered by identifier.

Annotations are stored by path and can be looked up along the parent chain
with `find_annotations_by_key_in_chain(key)` and
`find_annotations_by_predicate_in_chain(key, predicate)`.

## Annotations and source maps (`ctimeta.annotations`)

`Annotations.from_dict()` reads the `cti.*` keys of an annotation object and
`to_dict()` writes back the ones that are set. `read_cti_schema()` and
`read_reference()` return the `cti.schema` and `cti.reference` values as
lists of strings.

`GJsonPath` is a dotted path such as `.val.items`; `get_value()` accepts JSON
text or a decoded document, returns the whole document for `.`, ignores a
trailing `.#`, and returns `None` when the path is absent.

`TypeSourceMap`, `InstanceSourceMap` and `AnnotationType` read and write
their `$`-prefixed JSON forms.

## Untyped entities (`ctimeta.untyped`)

`convert_untyped_entity()` turns an `UntypedEntity` (raw JSON text for
schema, values, traits, traits schema and annotations) into an `EntityType`
if it has a schema, or an `EntityInstance` if it has values. It raises
`ValueError` when both or neither are present, when an instance is not
final, or when an instance carries traits, a traits schema or annotations.
`get_source_annotations()` parses raw annotations and reports whether legacy
`$`-prefixed source keys were present; if so, the source map is read from
them instead of from the `UntypedSourceMap`.

## Registry (`ctimeta.registry`)

```python
from ctimeta.registry import MetadataRegistry, DuplicateEntityError

registry = MetadataRegistry()
registry.add(parent)
registry.add(child)
registry.add(parent)          # raises DuplicateEntityError
```

`copy_from(other)` adds all types and then all instances of another
registry; `clone()` returns a shallow copy sharing the same maps.

## Package cache

- `ctimeta.layout`: `CacheLayout(packages_dir)` gives `package_dir()`,
  `source_info_path()` and `package_info_path()`. `get_root_dir()` uses the
  `CTIROOT` environment variable or `~/.cti`, creating it if missing;
  `get_packages_cache_dir()` returns its `src` subdirectory.
- `ctimeta.integrity`: `SourceIntegrityInfo` and `PackageIntegrityInfo` are
  loaded from and saved to the cache as JSON (`load` raises
  `FileNotFoundError` if no record exists). `validate_source_information()`
  checks a discovered origin against the recorded one, if there is one.
- `ctimeta.links`: `patch_relative_links(directory)` rewrites `.dep/` and
  `.ramlx/` relative links in every `.raml` file to point two levels further
  up; `replace_capture_group()` is the helper doing the substitution.
- `ctimeta.storage`: abstract `Origin` and `Storage` classes.
- `ctimeta.gitstorage`: `GitStorage.discover(name, version)` checks the
  version is semantic, fetches `https://<name>?go-get=1`, reads the
  `go-import` meta tag and resolves the version with `git ls-remote`,
  returning a `GitInfo`. `GitInfo.download(cache_dir)` fetches the ref with
  `git archive` and unpacks the zip into `cache_dir/package`, refusing
  entries that escape it. The `git` executable must be on `PATH`.

## What it does not do

- There is no command-line program.
- Entity types do not merge schemas along the parent chain and do not
  validate values against their schemas; schemas are kept as plain JSON
  objects.
- There is no package manager on top of the cache pieces: nothing here adds,
  downloads or installs dependencies as a whole, reads package index files,
  or packs packages into archives.