import threading

import pytest

from fieldops.locks import KeyedLock

pytestmark = pytest.mark.unit


def test_hold_many_blocks_holders_of_any_of_its_keys():
    locks = KeyedLock()
    entered = threading.Event()

    def contender():
        with locks.hold(2):
            entered.set()

    with locks.hold_many(1, 2):
        thread = threading.Thread(target=contender)
        thread.start()
        assert not entered.wait(timeout=0.2)
    thread.join(timeout=5)
    assert entered.is_set()


def test_hold_many_tolerates_repeated_keys():
    locks = KeyedLock()
    with locks.hold_many(3, 3):
        pass
    with locks.hold(3):
        pass
