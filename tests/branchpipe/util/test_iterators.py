import itertools
import random

import pytest

from branchpipe.util.buffer import BoundedBuffer, BufferCapacityError, DequeBuffer
from branchpipe.util.iterators import (
    BreakingIterator, DefilteredIterator, FilteredIterator, ResultSlot, size_hint,
    with_filtered, with_filtered_buf, with_folding
)
from branchpipe.util.shortcircuit import Err, Nothing, Ok, Option, Result, Some
from testutils import CountingIterator, result_samples


def test_filtered():
    output = with_filtered(result_samples(), lambda i: (n for n in i if n > 2))

    assert next(output) == Err("boom")
    assert next(output) == Err("hi")
    assert next(output) == Ok(3)
    assert next(output) == Err("zoop")
    assert next(output) == Ok(5)
    with pytest.raises(StopIteration):
        next(output)


def test_filtered_outputs_only_normal_values():
    seen = []

    def spy(outputs):
        for n in outputs:
            seen.append(n)
            yield n

    list(with_filtered(result_samples(), spy))
    assert seen == [1, 2, 1, 3, 1, 5]


def test_identity_round_trip():
    samples = result_samples()
    assert list(with_filtered(samples, lambda i: i)) == samples


def test_map_filter_map_matches_filter_map():
    samples = result_samples()
    with_ = list(with_filtered(samples, lambda i: (n // 2 for n in (n * 2 for n in i) if n > 3)))

    without = []
    for item in samples:
        if item.is_err():
            without.append(item)
        elif item.value * 2 > 3:
            without.append(item)

    assert with_ == without


def test_duplicating_transformation():
    output = list(with_filtered([Ok(1), Err("a"), Ok(2)], lambda i: (x for n in i for x in (n, n))))
    assert output == [Ok(1), Ok(1), Err("a"), Ok(2), Ok(2)]


def test_divergent_head_and_tail():
    items = [Err("a"), Err("b"), Ok(1), Err("c"), Err("d")]
    assert list(with_filtered(items, lambda i: i)) == items
    assert list(with_filtered(items, lambda i: (n for n in i if n > 5))) == [Err("a"), Err("b"), Err("c"), Err("d")]


def test_all_divergent_and_empty():
    items = [Err(1), Err(2)]
    assert list(with_filtered(items, lambda i: i)) == items
    assert list(with_filtered([], lambda i: i)) == []


def test_option_stream():
    items = [Some(1), Nothing(), Some(3)]
    assert list(with_filtered(items, lambda i: (n * 2 for n in i))) == [Some(2), Nothing(), Some(6)]


def test_option_stream_into_results():
    items = [Some(1), Nothing(), Some(3)]
    output = list(with_filtered(items, lambda i: i, item_type=Result))
    assert output == [Ok(1), Err(None), Ok(3)]


def test_filtered_is_lazy():
    source = CountingIterator(result_samples())
    output = with_filtered(source, lambda i: i)
    assert source.pulled == 0
    next(output)
    assert source.pulled == 1


def test_filtered_infinite_source():
    source = itertools.cycle([Ok(1), Err("e")])
    output = with_filtered(source, lambda i: (n + 1 for n in i))
    assert list(itertools.islice(output, 4)) == [Ok(2), Err("e"), Ok(2), Err("e")]


def _naive_filter_map(items, keep, times):
    out = []
    for item in items:
        if item.is_err():
            out.append(item)
        elif keep(item.value):
            out.extend([item] * times)
    return out


@pytest.mark.parametrize("seed", range(25))
def test_recombination_matches_eager_filter(seed):
    rng = random.Random(seed)
    items = [Ok(rng.randint(0, 9)) if rng.random() < 0.6 else Err(f"e{i}") for i in range(rng.randint(0, 30))]
    times = rng.randint(1, 3)

    def transform(outputs):
        for n in outputs:
            if n % 2 == 0:
                for _ in range(times):
                    yield n

    output = list(with_filtered(items, transform))
    assert output == _naive_filter_map(items, lambda n: n % 2 == 0, times)


def test_with_filtered_buf_uses_given_buffer():
    buf = DequeBuffer()
    output = with_filtered_buf(result_samples(), buf, lambda i: i)
    assert output.buffer is buf
    assert list(output) == result_samples()
    assert len(buf) == 0


def test_with_filtered_buf_bounded():
    output = with_filtered_buf(result_samples(), BoundedBuffer(2), lambda i: i)
    assert list(output) == result_samples()

    output = with_filtered_buf(result_samples(), BoundedBuffer(1), lambda i: i)
    with pytest.raises(BufferCapacityError):
        list(output)


def test_transformation_errors_propagate():
    def broken(outputs):
        for n in outputs:
            if n == 3:
                raise KeyError("three")
            yield n

    output = with_filtered(result_samples(), broken)
    with pytest.raises(KeyError):
        list(output)


def test_folded():
    assert with_folding(result_samples(), sum) == Err("boom")
    assert with_folding(itertools.islice(result_samples(), 3), sum) == Ok(4)


def test_fold_laziness():
    source = CountingIterator(itertools.chain(result_samples()[:3], itertools.repeat(Err("never"))))
    assert with_folding(source, lambda i: sum(itertools.islice(i, 3))) == Ok(4)
    assert source.pulled == 3


def test_fold_discards_partial_result():
    calls = []

    def f(outputs):
        result = sum(outputs)
        calls.append(result)
        return result

    assert with_folding(result_samples(), f) == Err("boom")
    assert calls == [4]


def test_fold_families():
    assert with_folding([Some(1), Some(2)], sum) == Some(3)
    assert with_folding([Some(1), Nothing(), Some(2)], sum) == Nothing()
    assert with_folding([Some(1), Nothing()], sum, item_type=Result) == Err(None)
    assert with_folding([], sum) == Ok(0)
    assert with_folding([], sum, item_type=Option) == Some(0)


def test_fold_with_early_exit():
    assert with_folding(result_samples(), lambda i: next(i)) == Ok(1)
    assert with_folding(result_samples(), lambda i: any(n > 1 for n in i)) == Ok(True)
    assert with_folding(result_samples(), lambda i: any(n > 4 for n in i)) == Err("boom")


def test_breaking_iterator_stops_for_good():
    slot = ResultSlot()
    source = CountingIterator([Ok(1), Err("a"), Ok(2), Err("b")])
    it = BreakingIterator(source, slot)

    assert next(it) == 1
    with pytest.raises(StopIteration):
        next(it)
    assert slot.residual == "a"
    for _ in range(3):
        with pytest.raises(StopIteration):
            next(it)
    assert slot.residual == "a"
    assert source.pulled == 2


def test_breaking_iterator_none_residual():
    slot = ResultSlot()
    assert list(BreakingIterator(iter([Some(1), Nothing(), Some(2)]), slot)) == [1]
    assert slot.filled
    assert slot.residual is None


def test_result_slot():
    slot = ResultSlot()
    assert not slot.filled
    with pytest.raises(RuntimeError, match="empty"):
        slot.residual
    slot.put(None)
    assert slot.filled
    with pytest.raises(RuntimeError, match="already"):
        slot.put("again")
    assert slot.residual is None


def test_size_hint_helper():
    assert size_hint([1, 2, 3]) == (3, 3)
    assert size_hint(iter([1, 2, 3])) == (3, 3)
    assert size_hint(range(4)) == (4, 4)
    assert size_hint(n for n in range(3)) == (0, None)


def test_filtered_iterator_size_hint():
    source = iter(result_samples())
    filtered = FilteredIterator(source, DequeBuffer())
    assert filtered.size_hint() == (0, 9)
    next(filtered)
    assert filtered.size_hint() == (0, 8)
    assert FilteredIterator((x for x in []), DequeBuffer()).size_hint() == (0, None)


def test_defiltered_iterator_size_hint():
    assert with_filtered(result_samples(), lambda i: i).size_hint() == (0, 9)
    assert with_filtered(result_samples(), lambda i: (n for n in i if n > 2)).size_hint() == (0, 9)
    # the transformation can produce more outputs than the source had values
    assert with_filtered(result_samples(), lambda i: list(i) * 3).size_hint() == (0, 18)
    assert with_filtered(result_samples(), lambda i: [1]).size_hint() == (0, 9)
    assert with_filtered((x for x in result_samples()), lambda i: i).size_hint() == (0, None)
    assert DefilteredIterator(iter([1, 2]), DequeBuffer(), None).size_hint() == (0, 2)


def test_breaking_iterator_size_hint():
    it = BreakingIterator(iter(result_samples()), ResultSlot())
    assert it.size_hint() == (0, 9)


def test_fold_calling_next_past_divergence():
    assert with_folding([Err("boom")], lambda i: next(i)) == Err("boom")
    assert with_folding([Ok(1), Nothing()], lambda i: (next(i), next(i))) == Err(None)
    assert with_folding([Some(1), Nothing()], lambda i: (next(i), next(i))) == Nothing()


def test_fold_calling_next_on_empty_source():
    with pytest.raises(StopIteration):
        with_folding([], lambda i: next(i))


def test_output_before_first_pull_fixes_family():
    output = list(with_filtered([Some(1), Nothing()], lambda i: itertools.chain([0], i)))
    assert output == [Ok(0), Ok(1), Err(None)]
    assert list(with_filtered([Some(1)], lambda i: itertools.chain([0], i), item_type=Option)) == [Some(0), Some(1)]


def test_iterators_accept_plain_lists():
    filtered = FilteredIterator([Ok(1), Err("e"), Ok(2)], DequeBuffer())
    assert list(filtered) == [1, 2]

    slot = ResultSlot()
    assert list(BreakingIterator([Ok(1), Ok(2), Err("e"), Ok(3)], slot)) == [1, 2]
    assert slot.residual == "e"
