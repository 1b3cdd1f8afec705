import pytest

from csiproxy.apigen.discovery import (
    build_canonical_group,
    build_group_from_doc_comment,
    build_input_dirs,
    extract_comment_tags,
    find_api_group_definitions,
    generated_files,
    planned_outputs,
    remove_generated_files,
)
from csiproxy.apigen.gotypes import (
    ApiGenError,
    GoType,
    Kind,
    Package,
    Signature,
    TypeName,
)
from csiproxy.apigen.groups import CSI_PROXY_API_PATH, DEFAULT_SERVER_BASE_PKG

DUMMY_API = "github.com/kubernetes-csi/csi-proxy/integrationtests/apigroups/api/dummy"
DUMMY_SERVER_BASE = "github.com/kubernetes-csi/csi-proxy/integrationtests/apigroups/server"
DUMMY_CLIENT_BASE = "github.com/kubernetes-csi/csi-proxy/integrationtests/apigroups/client"

DUMMY_DOC_COMMENTS = [
    "The comment below indicates that this package defines a CSI-proxy API group",
    "+csi-proxy-api-gen=groupName:dummy",
    f"+csi-proxy-api-gen=serverBasePkg:{DUMMY_SERVER_BASE}",
    f"+csi-proxy-api-gen=clientBasePkg:{DUMMY_CLIENT_BASE}",
]


def version_package(path, name, group="Dummy", response_type="ComputeDoubleResponse"):
    request = GoType(name=TypeName(name=f"*{path}.ComputeDoubleRequest"), kind=Kind.POINTER)
    response = GoType(name=TypeName(name=f"*{path}.{response_type}"), kind=Kind.POINTER)
    error = GoType(name=TypeName(name="error"), kind=Kind.INTERFACE)
    ctx = GoType(name=TypeName(package="context", name="Context"), kind=Kind.INTERFACE)
    method = GoType(
        name=TypeName(name=f"func(*{path}.ComputeDoubleRequest) (*{path}.{response_type}, error)"),
        kind=Kind.FUNC,
        signature=Signature(parameters=[ctx, request], results=[response, error]),
    )
    interface = GoType(
        name=TypeName(package=path, name=f"{group}Server"),
        kind=Kind.INTERFACE,
        methods={"ComputeDouble": method},
    )
    return Package(path=path, name=name, types={f"{group}Server": interface})


def doc_comment_universe(*versions):
    universe = {DUMMY_API: Package(path=DUMMY_API, name="dummy", comments=DUMMY_DOC_COMMENTS)}
    for v in versions:
        universe[f"{DUMMY_API}/{v}"] = version_package(f"{DUMMY_API}/{v}", v)
    return universe


def test_extract_comment_tags_from_doc_comment():
    tags = extract_comment_tags("+", DUMMY_DOC_COMMENTS)
    assert tags == {
        "csi-proxy-api-gen": [
            "groupName:dummy",
            f"serverBasePkg:{DUMMY_SERVER_BASE}",
            f"clientBasePkg:{DUMMY_CLIENT_BASE}",
        ]
    }


def test_extract_comment_tags_without_value():
    tags = extract_comment_tags("+", ["  +csi-proxy-api-gen  ", "", "unrelated"])
    assert tags == {"csi-proxy-api-gen": [""]}


def test_build_input_dirs_defaults_to_canonical_api_path():
    assert build_input_dirs([]) == ["github.com/kubernetes-csi/csi-proxy/client/api/..."]


def test_build_input_dirs_makes_inputs_recursive():
    dirs = build_input_dirs([DUMMY_API + "/", DUMMY_API, "already/..."])
    assert dirs == [DUMMY_API + "/...", DUMMY_API + "/...", "already/..."]


def test_find_groups_from_doc_comment():
    universe = doc_comment_universe("v1alpha1", "v1alpha2", "v1")
    groups = find_api_group_definitions(list(reversed(list(universe))), universe)
    assert len(groups) == 1
    group = groups[0]
    assert group.name == "dummy"
    assert group.server_base_pkg == DUMMY_SERVER_BASE
    assert group.client_base_pkg == DUMMY_CLIENT_BASE
    assert sorted(v.name for v in group.versions) == ["v1", "v1alpha1", "v1alpha2"]
    assert group.server_pkg() == DUMMY_SERVER_BASE + "/dummy"
    assert [c.name for c in group.server_callbacks] == ["ComputeDouble"]


def test_find_canonical_groups_skips_missing_root():
    v1_path = CSI_PROXY_API_PATH + "disk/v1"
    universe = {v1_path: version_package(v1_path, "v1", group="Disk")}
    inputs = [v1_path, CSI_PROXY_API_PATH + "disk"]
    groups = find_api_group_definitions(inputs, universe)
    assert len(groups) == 1
    assert groups[0].name == "disk"
    assert groups[0].api_base_pkg == CSI_PROXY_API_PATH + "disk"
    assert groups[0].server_base_pkg == DEFAULT_SERVER_BASE_PKG
    assert [v.name for v in groups[0].versions] == ["v1"]


def test_invalid_version_package_under_group_raises():
    universe = doc_comment_universe("v1")
    universe[DUMMY_API + "/notaversion"] = version_package(DUMMY_API + "/notaversion", "notaversion")
    with pytest.raises(ApiGenError, match="valid API group version"):
        find_api_group_definitions(list(universe), universe)


def test_group_without_versions_raises():
    universe = doc_comment_universe()
    with pytest.raises(ApiGenError, match="doesn't have any version"):
        find_api_group_definitions(list(universe), universe)


def test_inconsistent_callbacks_across_versions_raise():
    universe = doc_comment_universe("v1")
    v2 = DUMMY_API + "/v2"
    universe[v2] = version_package(v2, "v2", response_type="OtherResponse")
    with pytest.raises(ApiGenError, match="inconsistent across versions"):
        find_api_group_definitions(list(universe), universe)


def test_malformed_comment_tag_raises():
    pkg = Package(path="a/b", name="b", comments=["+csi-proxy-api-gen=groupName"])
    with pytest.raises(ApiGenError, match="Malformed comment tag"):
        build_group_from_doc_comment("a/b", pkg, {})


def test_unknown_comment_tag_raises():
    pkg = Package(path="a/b", name="b", comments=["+csi-proxy-api-gen=color:blue"])
    with pytest.raises(ApiGenError, match="Unknown comment tag"):
        build_group_from_doc_comment("a/b", pkg, {})


def test_doc_comment_without_tags_is_not_a_group():
    groups = {}
    pkg = Package(path="a/b", name="b", comments=["just a comment"])
    assert build_group_from_doc_comment("a/b", pkg, groups) is False
    assert groups == {}


def test_bare_tag_uses_package_name():
    groups = {}
    pkg = Package(path="a/b", name="b", comments=["+csi-proxy-api-gen"])
    assert build_group_from_doc_comment("a/b", pkg, groups) is True
    assert groups["a/b"].name == "b"


def test_canonical_group_with_bad_version_raises():
    path = CSI_PROXY_API_PATH + "disk/latest"
    with pytest.raises(ApiGenError, match="Unexpected go package"):
        build_canonical_group(path, version_package(path, "latest", group="Disk"), {})


def test_canonical_group_root_is_ignored():
    groups = {}
    path = CSI_PROXY_API_PATH + "disk"
    build_canonical_group(path, Package(path=path, name="disk"), groups)
    assert groups == {}


def single_group(*versions):
    universe = doc_comment_universe(*versions)
    return find_api_group_definitions(list(universe), universe)[0]


def test_generated_files_lists_group_and_version_files():
    group = single_group("v1", "v1alpha1")
    files = generated_files(group)
    assert len(files) == 2 + 3 * 2
    assert DUMMY_SERVER_BASE + "/dummy/api_group_generated.go" in files
    assert DUMMY_SERVER_BASE + "/dummy/impl/types_generated.go" in files
    assert DUMMY_CLIENT_BASE + "/dummy/v1/client_generated.go" in files
    assert DUMMY_SERVER_BASE + "/dummy/impl/v1alpha1/server_generated.go" in files


def test_remove_generated_files(tmp_path):
    group = single_group("v1")
    kept = tmp_path / DUMMY_SERVER_BASE / "dummy" / "server.go"
    kept.parent.mkdir(parents=True)
    kept.write_text("keep")
    for relative in generated_files(group)[:3]:
        target = tmp_path / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_text("generated")

    remove_generated_files(group, tmp_path)

    assert all(not (tmp_path / f).exists() for f in generated_files(group))
    assert kept.read_text() == "keep"


def test_planned_outputs_include_skeletons_when_missing(tmp_path):
    group = single_group("v1")
    outputs = planned_outputs(group, tmp_path)
    assert DUMMY_SERVER_BASE + "/dummy/server.go" in outputs
    assert DUMMY_SERVER_BASE + "/dummy/impl/types.go" in outputs
    assert DUMMY_SERVER_BASE + "/dummy/impl/v1/conversion.go" in outputs
    assert set(generated_files(group)) <= set(outputs)


def test_planned_outputs_skip_existing_skeletons(tmp_path):
    group = single_group("v1", "v1alpha1")
    server_file = tmp_path / DUMMY_SERVER_BASE / "dummy" / "server.go"
    server_file.parent.mkdir(parents=True)
    server_file.write_text("package dummy\n")
    outputs = planned_outputs(group, tmp_path)
    assert DUMMY_SERVER_BASE + "/dummy/server.go" not in outputs
    # types.go is only generated for single-version groups
    assert DUMMY_SERVER_BASE + "/dummy/impl/types.go" not in outputs
    assert len(outputs) == len(generated_files(group)) + 2