# csiproxy

Building blocks for working with a Windows CSI proxy. The proxy serves its API
groups over versioned named pipes.

## What is inside

- `csiproxy.apiversion` parses and orders Kubernetes-style API version names
  such as `v1`, `v1alpha2` and `v2beta3`. It provides `new_version`,
  `is_valid_version`, `Version`, `Qualifier`, `Comparison` and
  `InvalidVersionError`.
- `csiproxy.pipes` holds `pipe_path`, which gives the named-pipe path for an
  API group at a version.
- `csiproxy.dummy` holds `DummyServer`, an example API group server with two
  endpoints, `compute_double` and `tell_me_a_poem`, and their request and
  response dataclasses.
- `csiproxy.apigen` is the model behind API group code generation:
  - `gotypes` describes Go types (`GoType`, `TypeName`, `Member`, `Signature`,
    `Package`, `Kind`). It also has the helpers `replace_types_package`,
    `to_camel`, `to_snake`, `canonicalize_pkg_path`,
    `snake_case_to_package_name` and `is_internal_protobuf_field`.
  - `groups` defines `GroupDefinition`, `ApiVersion` and `OrderedCallbacks`.
    Adding a version to a group checks its server callbacks and raises
    `ApiGenError` when they are malformed or disagree across versions.
  - `namers` provides the naming schemes (`short_name`, `RemovePackageNamer`,
    `ShortNamer`, `ShortenVersionPackageNamer`, `VersionedVariableNamer`).
  - `discovery` finds groups in package inputs and in `+csi-proxy-api-gen`
    doc-comment tags (`find_api_group_definitions`). It also lists the files
    generated for a group (`generated_files`, `planned_outputs`), removes them
    (`remove_generated_files`) and normalises input directories
    (`build_input_dirs`).
- `csiproxy.iscsi_scripts` and `csiproxy.testenv` are helpers for end-to-end tests
  on a Windows host:
  - `setup_env`, `set_chap`, `set_reverse_chap` and `cleanup` prepare a loopback
    iSCSI target through PowerShell.
  - `disk_init` and `disk_cleanup` create and remove a virtual hard disk.
  - `file_hashes` and `recursive_diff` hash and compare directory trees.
    `recursive_diff` returns one message for each difference it finds.

## API versions

```python
from csiproxy.apiversion import Comparison, is_valid_version, new_version

v1alpha1 = new_version("v1alpha1")
v1 = new_version("v1")

assert v1alpha1.compare(v1) is Comparison.LESSER
assert str(v1) == "v1"
assert is_valid_version("v2beta3")
assert not is_valid_version("v0")
```

For the same major number, stable ranks above beta and beta ranks above alpha.
An invalid name such as `"whatever"` or `"v2alpha0"` raises
`InvalidVersionError`, which is a `ValueError`.

## Named pipes

```python
from csiproxy.apiversion import new_version
from csiproxy.pipes import pipe_path

path = pipe_path("filesystem", new_version("v2alpha1"))
assert path.endswith("csi-proxy-filesystem-v2alpha1")
```

## The example API group

```python
from csiproxy.apiversion import new_version
from csiproxy.dummy import ComputeDoubleRequest, DummyServer, TellMeAPoemRequest

server = DummyServer()
poem = server.tell_me_a_poem(TellMeAPoemRequest(i_want_a_title=True), new_version("v1"))
assert poem.title == "The New Colossus"

doubled = server.compute_double(ComputeDoubleRequest(input64=21))
assert doubled.response == 42
```

If the doubled value does not fit in a signed 64-bit integer, `compute_double`
raises `OverflowError64`.

## What this package does not do

- It has no command-line program.
- It does not serve or call anything over named pipes or gRPC. `pipe_path` only
  builds the path.
- The `apigen` modules discover API groups, check them and work out which
  files belong to them. They do not write any generated source code.

## Running the tests

Install the package with its `test` extra, then run `pytest` from the project
root. The helpers in `csiproxy.iscsi_scripts` and `csiproxy.testenv` that call
PowerShell work only on a Windows host with the iSCSI target and Hyper-V
features installed.