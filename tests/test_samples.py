from __future__ import annotations

import pytest

from flowmon.samples import LineKind, SampleStream, parse_flow_line
from flowmon.stats import StatsWindow


@pytest.mark.parametrize(
    "line, kind, value",
    [
        ("FR:12.5", LineKind.SAMPLE, 12.5),
        ("FR:-3", LineKind.SAMPLE, -3.0),
        ("FR: 7.25 ", LineKind.SAMPLE, 7.25),
        ("FR:1e2", LineKind.SAMPLE, 100.0),
        ("FR:abc", LineKind.MALFORMED, None),
        ("FR:", LineKind.MALFORMED, None),
        ("FR:12.5abc", LineKind.MALFORMED, None),
        ("FR:NaN", LineKind.MALFORMED, None),
        ("FR:Infinity", LineKind.MALFORMED, None),
        ("FR:-inf", LineKind.MALFORMED, None),
        ("XX:12.5", LineKind.UNRECOGNIZED, None),
        ("fr:12.5", LineKind.UNRECOGNIZED, None),
        (" FR:12.5", LineKind.UNRECOGNIZED, None),
        ("", LineKind.UNRECOGNIZED, None),
    ],
)
def test_parse_flow_line(line: str, kind: LineKind, value) -> None:
    assert parse_flow_line(line) == (kind, value)


def test_ingest_pushes_only_valid_samples() -> None:
    window = StatsWindow()
    stream = SampleStream(window)
    assert stream.ingest("FR:12.5") == 12.5
    assert stream.ingest("FR:abc") is None
    assert stream.ingest("XX:12.5") is None
    assert stream.ingest("") is None
    assert stream.ingest("FR:nan") is None
    assert window.history == (12.5,)
    assert window.current == 12.5
    assert stream.stats() == {"samples": 1, "malformed": 2, "unrecognized": 2}
