import asyncio
import logging
import sys
import threading

import pytest

from runlog.contracts import FlowRunContext
from runlog.runtime.prints import is_capturing, print_capture, resolve_log_prints
from runlog.testkit import collect_records

PRINTS = logging.getLogger("runlog.test.prints")


@pytest.mark.parametrize(
    ("explicit", "parent_flag", "default", "expected"),
    [
        (True, False, False, True),
        (False, True, True, False),
        (None, True, False, True),
        (None, False, True, False),
        (None, None, True, True),
        (None, None, False, False),
    ],
)
def test_resolve_log_prints(explicit, parent_flag, default, expected):
    parent = None
    if parent_flag is not None:
        parent = FlowRunContext(
            flow_run_id="fr", flow_run_name="n", flow_name="f", log_prints=parent_flag
        )

    assert resolve_log_prints(explicit, parent, default) is expected


def test_prints_are_routed_and_stdout_restored(capsys):
    before = sys.stdout
    with collect_records() as collector:
        with print_capture(PRINTS):
            assert is_capturing()
            print("hello")
            print("partial", end="")
            sys.stdout.write(" line\n")
            print()
        print("after")

    assert sys.stdout is before
    assert not is_capturing()
    assert collector.messages == ["hello", "partial line"]
    assert all(record.levelno == logging.INFO for record in collector.records)
    assert capsys.readouterr().out == "after\n"


def test_unterminated_output_is_flushed_at_scope_end(capsys):
    with collect_records() as collector:
        with print_capture(PRINTS, level=logging.WARNING):
            print("tail", end="")

    assert collector.messages == ["tail"]
    assert collector.records[0].levelno == logging.WARNING
    assert capsys.readouterr().out == ""


def test_stdout_restored_when_scope_raises(capsys):
    before = sys.stdout
    with collect_records() as collector:
        with pytest.raises(RuntimeError):
            with print_capture(PRINTS):
                print("before failure")
                raise RuntimeError("boom")

    assert sys.stdout is before
    assert collector.messages == ["before failure"]


def test_disabled_scope_blocks_inherited_capture(capsys):
    with collect_records() as collector:
        with print_capture(PRINTS):
            print("outer")
            with print_capture(PRINTS, enabled=False):
                assert not is_capturing()
                print("inner")
            print("outer again")

    assert collector.messages == ["outer", "outer again"]
    assert capsys.readouterr().out == "inner\n"


def test_disabled_scope_without_capture_leaves_stdout_alone():
    before = sys.stdout
    with print_capture(PRINTS, enabled=False):
        assert sys.stdout is before


def test_other_threads_print_to_the_terminal(capsys):
    def worker():
        print("from thread")

    with collect_records() as collector:
        with print_capture(PRINTS):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()
            print("from scope")

    assert collector.messages == ["from scope"]
    assert capsys.readouterr().out == "from thread\n"


def test_sibling_coroutines_do_not_share_capture(capsys):
    async def captured():
        with print_capture(PRINTS):
            await asyncio.sleep(0)
            print("captured")
            await asyncio.sleep(0)

    async def plain():
        await asyncio.sleep(0)
        print("plain")
        await asyncio.sleep(0)

    async def main():
        await asyncio.gather(captured(), plain())

    with collect_records() as collector:
        asyncio.run(main())

    assert collector.messages == ["captured"]
    assert capsys.readouterr().out == "plain\n"
