"""A test API group with two endpoints: doubling a number and reciting a poem."""

from __future__ import annotations

from dataclasses import dataclass, field

from csiproxy.apiversion import Version

_INT64_MIN = -(2**63)
_INT64_MAX = 2**63 - 1

_POEM_TITLE = "The New Colossus"
_POEM_LINES = (
    "Not like the brazen giant of Greek fame,",
    "With conquering limbs astride from land to land;",
    "Here at our sea-washed, sunset gates shall stand",
    "A mighty woman with a torch, whose flame",
    "Is the imprisoned lightning, and her name",
    "Mother of Exiles. From her beacon-hand",
    "Glows world-wide welcome; her mild eyes command",
    "The air-bridged harbor that twin cities frame.",
    '"Keep, ancient lands, your storied pomp!" cries she',
    'With silent lips. "Give me your tired, your poor,',
    "Your huddled masses yearning to breathe free,",
    "The wretched refuse of your teeming shore.",
    "Send these, the homeless, tempest-tost to me,",
    'I lift my lamp beside the golden door!"',
)


class OverflowError64(OverflowError):
    """Raised when doubling a value overflows a signed 64-bit integer."""


@dataclass
class ComputeDoubleRequest:
    """Request to the ComputeDouble endpoint."""

    input64: int = 0


@dataclass
class ComputeDoubleResponse:
    """Response from the ComputeDouble endpoint."""

    response: int = 0


@dataclass
class TellMeAPoemRequest:
    """Request to the TellMeAPoem endpoint."""

    i_want_a_title: bool = False


@dataclass
class TellMeAPoemResponse:
    """Response from the TellMeAPoem endpoint."""

    title: str = ""
    lines: list[str] = field(default_factory=list)


def _sign(x: int) -> int:
    return (x > 0) - (x < 0)


def _wrap_int64(x: int) -> int:
    return ((x - _INT64_MIN) % 2**64) + _INT64_MIN


class DummyServer:
    """Server for the dummy API group."""

    def compute_double(
        self, request: ComputeDoubleRequest, version: Version | None = None
    ) -> ComputeDoubleResponse:
        """Return twice the input; raise OverflowError64 if it does not fit in int64."""
        value = request.input64
        if not _INT64_MIN <= value <= _INT64_MAX:
            raise ValueError(f"input {value} is not a 64-bit signed integer")
        doubled = _wrap_int64(2 * value)
        if _sign(value) != _sign(doubled):
            raise OverflowError64(f"int64 overflow with input: {value}")
        return ComputeDoubleResponse(response=doubled)

    def tell_me_a_poem(
        self, request: TellMeAPoemRequest, version: Version | None = None
    ) -> TellMeAPoemResponse:
        """Return a poem, titled if the request asks for a title."""
        return TellMeAPoemResponse(
            title=_POEM_TITLE if request.i_want_a_title else "",
            lines=list(_POEM_LINES),
        )