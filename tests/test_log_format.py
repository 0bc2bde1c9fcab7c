"""
Tests for the json log formatter
"""

# Standard
import logging

# Local
from nfd_operator.log_format import NfdJsonFormatter
from nfd_operator.test_helpers.helpers import TEST_NAMESPACE, setup_instance


def make_record(**extra):
    record = logging.LogRecord(
        name="TEST",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Reconciling",
        args=None,
        exc_info=None,
    )
    for key, val in extra.items():
        setattr(record, key, val)
    return record


def test_format_resource_from_record():
    """Make sure the instance identity attached to a record is logged"""
    instance = setup_instance()
    instance["metadata"]["resourceVersion"] = "7"
    record = make_record(resource=instance, reconciliationId="abc")
    output = NfdJsonFormatter().format(record)
    assert record.kind == "NodeFeatureDiscovery"
    assert record.namespace == TEST_NAMESPACE
    assert record.resourceName == instance["metadata"]["name"]
    assert record.resourceVersion == "7"
    assert "abc" in output
    assert instance["metadata"]["name"] in output


def test_format_resource_from_formatter():
    """Make sure a formatter bound to an instance fills in the identity"""
    instance = setup_instance()
    record = make_record()
    NfdJsonFormatter(manifest=instance, reconciliation_id="xyz").format(record)
    assert record.resourceName == instance["metadata"]["name"]
    assert record.reconciliationId == "xyz"


def test_format_keeps_record_reconciliation_id():
    """Make sure the id attached to the record wins over the bound one"""
    record = make_record(reconciliationId="from-record")
    NfdJsonFormatter(reconciliation_id="bound").format(record)
    assert record.reconciliationId == "from-record"
