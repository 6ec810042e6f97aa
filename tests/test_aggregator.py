from metricdash.aggregator import ThresholdResult, aggregate
from metricdash.values import parse_value


def _matrix():
    return parse_value(
        {
            "resultType": "matrix",
            "result": [{"metric": {"pod": "api-0"}, "values": [[1700000000, "1"], [1700000060, "2"]]}],
        }
    )


def test_thresholds_key_is_omitted_without_thresholds() -> None:
    payload = aggregate(_matrix(), []).to_payload()

    assert payload == {"data": [{"metric": {"pod": "api-0"}, "values": [[1700000000, "1"], [1700000060, "2"]]}]}


def test_thresholds_are_kept_in_given_order() -> None:
    thresholds = [
        ThresholdResult(data=[1700000000, "80"], key="warn", name="Warning", color="orange", value="80", unit="%"),
        ThresholdResult(data=[1700000000, "95"], key="crit", name="Critical", color="red", value="95", unit="%"),
    ]

    payload = aggregate(_matrix(), thresholds).to_payload()

    assert [t["key"] for t in payload["thresholds"]] == ["warn", "crit"]
    assert payload["thresholds"][1] == {
        "data": [1700000000, "95"],
        "key": "crit",
        "name": "Critical",
        "color": "red",
        "value": "95",
        "unit": "%",
    }
