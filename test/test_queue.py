"""
Tests for the playback Queue
"""

import random

import pytest

from core.errors import QueueIndexError, ValidationError
from core.queue import Queue


@pytest.fixture
def notifications():
    return []


@pytest.fixture
def queue(notifications):
    return Queue(on_change=notifications.append)


def ids(items):
    return [item.resource_id for item in items]


class TestQueue:
    def test_enqueue_single_and_batch(self, queue, notifications, make_item):
        assert queue.enqueue(make_item('a')) == 1
        assert queue.enqueue([make_item('b'), make_item('c')]) == 3

        assert ids(queue.get_all()) == ['a', 'b', 'c']
        # A batch still fires only one notification
        assert len(notifications) == 2
        assert ids(notifications[-1]) == ['a', 'b', 'c']

    def test_pop_returns_head(self, queue, notifications, make_item):
        queue.enqueue([make_item('a'), make_item('b')])

        assert queue.pop().resource_id == 'a'
        assert ids(queue.get_all()) == ['b']
        assert ids(notifications[-1]) == ['b']

    def test_pop_empty_returns_none(self, queue, notifications):
        assert queue.pop() is None
        assert notifications == [[]]

    def test_move_is_one_indexed(self, queue, make_item):
        queue.enqueue([make_item(x) for x in 'abcde'])

        moved = queue.move(4, 1)

        assert moved.resource_id == 'd'
        assert ids(queue.get_all()) == ['d', 'a', 'b', 'c', 'e']

    def test_move_defaults_to_top(self, queue, make_item):
        queue.enqueue([make_item(x) for x in 'abc'])
        queue.move(3)
        assert ids(queue.get_all()) == ['c', 'a', 'b']

    @pytest.mark.parametrize('from_position,to_position', [(0, 1), (1, 0), (4, 1), (1, 4), (-1, 2)])
    def test_move_out_of_bounds_leaves_queue_untouched(self, queue, notifications, make_item, from_position, to_position):
        queue.enqueue([make_item(x) for x in 'abc'])
        before = queue.get_all()
        notified = len(notifications)

        with pytest.raises(QueueIndexError) as excinfo:
            queue.move(from_position, to_position)

        assert queue.get_all() == before
        assert len(notifications) == notified
        assert excinfo.value.size == 3
        assert f"from: {from_position}" in str(excinfo.value)
        assert f"to: {to_position}" in str(excinfo.value)

    def test_bounds_error_is_a_validation_error(self, queue):
        with pytest.raises(ValidationError):
            queue.remove(1)

    def test_remove(self, queue, make_item):
        queue.enqueue([make_item(x) for x in 'abc'])

        removed = queue.remove(2)

        assert removed.resource_id == 'b'
        assert ids(queue.get_all()) == ['a', 'c']
        assert queue.size() == len(queue) == 2

    def test_clear_everything(self, queue, make_item):
        queue.enqueue([make_item(x) for x in 'abc'])
        assert queue.clear() == 3
        assert queue.size() == 0

    def test_clear_inclusive_range(self, queue, make_item):
        queue.enqueue([make_item(x) for x in 'abcdef'])

        removed = queue.clear(2, 4)

        assert removed == 3
        assert ids(queue.get_all()) == ['a', 'e', 'f']

    def test_clear_from_start_to_end(self, queue, make_item):
        queue.enqueue([make_item(x) for x in 'abcdef'])
        assert queue.clear(3) == 4
        assert ids(queue.get_all()) == ['a', 'b']

    @pytest.mark.parametrize('start,end', [(0, None), (7, None), (3, 2), (2, 7)])
    def test_clear_out_of_bounds(self, queue, make_item, start, end):
        queue.enqueue([make_item(x) for x in 'abcdef'])
        with pytest.raises(QueueIndexError):
            queue.clear(start, end)
        assert queue.size() == 6

    def test_shuffle_is_permutation_with_single_notification(self, queue, notifications, make_item):
        queue.enqueue([make_item(x) for x in 'abcde'])
        notifications.clear()

        queue.shuffle(random.Random(42))

        assert sorted(ids(queue.get_all())) == list('abcde')
        assert len(notifications) == 1

    def test_no_gaps_after_mixed_operations(self, queue, make_item):
        rng = random.Random(7)
        queue.enqueue([make_item(f"id{i}") for i in range(20)])

        for _ in range(50):
            size = queue.size()
            if size == 0:
                break
            op = rng.choice(['pop', 'remove', 'move', 'enqueue'])
            if op == 'pop':
                queue.pop()
            elif op == 'remove':
                queue.remove(rng.randint(1, size))
            elif op == 'move':
                queue.move(rng.randint(1, size), rng.randint(1, size))
            else:
                queue.enqueue(make_item(f"new{rng.randint(0, 999)}"))

            items = queue.get_all()
            assert queue.size() == len(items)
            assert all(item is not None for item in items)
            assert [queue.get(i) for i in range(queue.size())] == items

    def test_listener_failure_does_not_break_mutation(self, make_item):
        def explode(items):
            raise RuntimeError("listener broke")

        queue = Queue(on_change=explode)
        queue.enqueue(make_item('a'))
        assert queue.size() == 1

    def test_requester_display(self, make_item):
        assert make_item('a', requester='bob').requester_display == 'bob'
        assert make_item('a', requester='bob', nickname='Bobby').requester_display == 'Bobby (bob)'
