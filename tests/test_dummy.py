import pytest

from csiproxy.apiversion import new_version
from csiproxy.dummy import (
    ComputeDoubleRequest,
    DummyServer,
    OverflowError64,
    TellMeAPoemRequest,
)

INT32_MAX = 2**31 - 1
INT64_MIN = -(2**63)


@pytest.fixture
def server():
    return DummyServer()


def test_compute_double_happy_path(server):
    request = ComputeDoubleRequest(input64=INT32_MAX // 2 + 1)
    response = server.compute_double(request, new_version("v1alpha2"))
    assert response.response == INT32_MAX + 1


def test_compute_double_overflow(server):
    request = ComputeDoubleRequest(input64=INT64_MIN // 2 - 1)
    with pytest.raises(OverflowError64) as excinfo:
        server.compute_double(request, new_version("v1alpha2"))
    assert "int64 overflow" in str(excinfo.value)


def test_compute_double_positive_overflow(server):
    with pytest.raises(OverflowError64):
        server.compute_double(ComputeDoubleRequest(input64=2**62), new_version("v1"))


def test_compute_double_zero(server):
    assert server.compute_double(ComputeDoubleRequest(input64=0)).response == 0


def test_compute_double_negative(server):
    assert server.compute_double(ComputeDoubleRequest(input64=-21)).response == -42


def test_compute_double_rejects_out_of_range_input(server):
    with pytest.raises(ValueError):
        server.compute_double(ComputeDoubleRequest(input64=2**63))


def test_tell_me_a_poem_with_title(server):
    response = server.tell_me_a_poem(TellMeAPoemRequest(i_want_a_title=True), new_version("v1"))
    assert response.title == "The New Colossus"
    assert len(response.lines) == 14
    assert response.lines[0] == "Not like the brazen giant of Greek fame,"
    assert response.lines[-1] == 'I lift my lamp beside the golden door!"'


def test_tell_me_a_poem_without_title(server):
    response = server.tell_me_a_poem(TellMeAPoemRequest(), new_version("v1"))
    assert response.title == ""
    assert len(response.lines) == 14


def test_poem_lines_are_independent_copies(server):
    first = server.tell_me_a_poem(TellMeAPoemRequest())
    first.lines.clear()
    second = server.tell_me_a_poem(TellMeAPoemRequest())
    assert len(second.lines) == 14