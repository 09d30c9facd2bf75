"""Identity Gate — capability parsing and enforcement."""

from uuid import uuid4

import pytest

from marketcore.core.errors import ForbiddenError
from marketcore.core.identity import Caller, Capability, parse_capabilities


def test_parse_ignores_unknown_and_blank():
    caps = parse_capabilities("can_book_studios, bogus, ,can_place_bids")
    assert caps == {Capability.BOOK_STUDIOS, Capability.PLACE_BIDS}
    assert parse_capabilities(None) == frozenset()
    assert parse_capabilities("") == frozenset()


def test_require_raises_forbidden():
    caller = Caller(uuid4(), frozenset({Capability.PLACE_BIDS}))
    caller.require(Capability.PLACE_BIDS, "place_bid")
    with pytest.raises(ForbiddenError) as exc:
        caller.require(Capability.ACCEPT_BIDS, "resolve_bid")
    assert "can_accept_bids" in exc.value.message
    assert exc.value.context.party_id == str(caller.party_id)


def test_can():
    caller = Caller(uuid4())
    assert not caller.can(Capability.CREATE_STUDIOS)
