import logging

from mobile.parrot.services.logger import LogBuffer


def test_buffer_keeps_most_recent_lines():
    buffer = LogBuffer(max_lines=3)
    for index in range(5):
        buffer.add(f"line {index}")

    lines = buffer.get()
    assert len(buffer) == 3
    assert [line.split("  ", 1)[1] for line in lines] == ["line 2", "line 3", "line 4"]

    buffer.clear()
    assert buffer.get() == []


def test_lines_are_mirrored_to_logging(caplog):
    buffer = LogBuffer()
    with caplog.at_level(logging.INFO, logger="parrot"):
        buffer.add("Recording started")
        buffer.error("Could not play a.wav: broken")

    levels = {record.getMessage(): record.levelno for record in caplog.records}
    assert levels["Recording started"] == logging.INFO
    assert levels["Could not play a.wav: broken"] == logging.ERROR
