"""Tests for UniqueIdAllocator against an in-memory registry."""

import uuid

import pytest

from casebook.cases.allocator import UniqueIdAllocator
from casebook.cases.case_ids import CASE_ID_ALPHABET
from casebook.cases.errors import CaseIdExhaustedError


class FakeRegistry:
    """Registry that reports a fixed set of IDs as taken and records every check."""

    def __init__(self, taken=()):
        self.taken = set(taken)
        self.checked = []

    async def exists(self, case_id):
        self.checked.append(case_id)
        return case_id in self.taken


class FailingRegistry:
    async def exists(self, case_id):
        raise RuntimeError("store offline")


def scripted_generator(values):
    """Generator returning ``values`` in order, then repeating the last one."""
    values = list(values)
    calls = []

    def _generate(length):
        calls.append(length)
        index = min(len(calls) - 1, len(values) - 1)
        return values[index]

    _generate.calls = calls
    return _generate


@pytest.mark.asyncio
async def test_free_candidate_is_accepted_on_first_attempt():
    registry = FakeRegistry()
    allocator = UniqueIdAllocator(registry)

    allocated = await allocator.allocate()

    assert allocator.attempts == 1
    assert len(allocated.case_id) == 10
    assert set(allocated.case_id) <= set(CASE_ID_ALPHABET)
    assert registry.checked == [allocated.case_id]


@pytest.mark.asyncio
async def test_internal_id_is_a_uuid():
    allocated = await UniqueIdAllocator(FakeRegistry()).allocate()
    assert str(uuid.UUID(allocated.id)) == allocated.id


@pytest.mark.asyncio
@pytest.mark.parametrize("collisions", [1, 3, 7])
async def test_collisions_cost_one_attempt_each(collisions):
    taken = [f"TAKEN{n:05d}".replace("0", "2").replace("1", "3") for n in range(collisions)]
    generator = scripted_generator(taken + ["FREEID2345"])
    allocator = UniqueIdAllocator(FakeRegistry(taken), generator=generator)

    allocated = await allocator.allocate()

    assert allocated.case_id == "FREEID2345"
    assert allocator.attempts == collisions + 1
    assert len(generator.calls) == collisions + 1


@pytest.mark.asyncio
async def test_fallback_length_is_used_after_exhaustion_and_checked():
    taken = {"AAAAAAAAAA", "BBBBBBBBBBBB"}
    registry = FakeRegistry(taken)
    generator = scripted_generator(["AAAAAAAAAA"] * 5 + ["BBBBBBBBBBBB", "CCCCCCCCCCCC"])
    allocator = UniqueIdAllocator(registry, max_attempts=5, generator=generator)

    allocated = await allocator.allocate()

    assert allocated.case_id == "CCCCCCCCCCCC"
    assert len(allocated.case_id) == 12
    assert generator.calls == [10] * 5 + [12, 12]
    assert allocator.attempts == 7
    # The fallback candidate that collided was checked, not blindly returned
    assert "BBBBBBBBBBBB" in registry.checked


@pytest.mark.asyncio
async def test_exhaustion_at_both_lengths_raises():
    registry = FakeRegistry({"AAAAAAAAAA", "AAAAAAAAAAAA"})

    def generator(length):
        return "A" * length

    allocator = UniqueIdAllocator(registry, max_attempts=4, generator=generator)

    with pytest.raises(CaseIdExhaustedError):
        await allocator.allocate()
    assert allocator.attempts == 8
    assert len(registry.checked) == 8


@pytest.mark.asyncio
async def test_registry_errors_propagate():
    allocator = UniqueIdAllocator(FailingRegistry())

    with pytest.raises(RuntimeError, match="store offline"):
        await allocator.allocate()
