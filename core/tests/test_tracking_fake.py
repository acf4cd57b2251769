import pytest

from runlog.tracking.fakes import FakeTrackingClient


def test_fake_tracking_client_records_calls_in_order():
    client = FakeTrackingClient()

    run_id = client.start_run(run_name="gray-dingo", tags={"flow_name": "hello"})
    client.set_tags({"stage": "demo"})
    client.log_text("line one\n", artifact_file="logs/gray-dingo.log")
    client.end_run(status="completed")

    names = [call.name for call in client.calls]
    assert names == ["start_run", "set_tags", "log_text", "end_run"]
    assert client.calls[0].kwargs == {"run_name": "gray-dingo", "tags": {"flow_name": "hello"}}
    assert client.texts(run_id) == {"logs/gray-dingo.log": "line one\n"}
    assert client.active_run_id is None


def test_fake_tracking_client_strict_lifecycle():
    client = FakeTrackingClient()

    with pytest.raises(RuntimeError, match="No active run"):
        client.log_text("orphan", artifact_file="logs/x.log")

    client.start_run(run_name="demo", tags={})

    with pytest.raises(RuntimeError, match="already active"):
        client.start_run(run_name="dup", tags={})

    client.end_run(status="completed")

    with pytest.raises(RuntimeError, match="No active run"):
        client.end_run(status="failed")
    assert client.texts("run_1") == {}
