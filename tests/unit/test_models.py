"""
Unit tests for record model building blocks.

Tests cover:
- ID canonicalization
- BaseInfo serialization
- Default list ordering
- ListOutput shape
"""

import pytest
from pydantic import ValidationError

from etcd_sdk.codec import encode_record
from etcd_sdk.models import BaseInfo, HasBaseInfo, ListOutput, Prefixer, default_sort_key
from tests.models import Foo, SampleRecord


class TestBaseInfoId:
    """Tests for BaseInfo.id decoding."""

    def test_string_id(self):
        """String IDs are kept as-is."""
        info = BaseInfo.model_validate_json('{"id":"123","create_time":11,"update_time":22}')

        assert info.id == "123"
        assert info.create_time == 11
        assert info.update_time == 22

    def test_numeric_id_canonicalized(self):
        """Numeric IDs become their decimal string."""
        info = BaseInfo.model_validate_json('{"id":123,"create_time":11,"update_time":22}')

        assert info.id == "123"
        assert info.update_time == 22

    def test_float_id_canonicalized(self):
        """Integral floats drop the fraction."""
        info = BaseInfo.model_validate_json('{"id":123.0}')

        assert info.id == "123"

    def test_null_id_is_empty(self):
        """A null ID decodes to the empty string."""
        assert BaseInfo.model_validate_json('{"id":null}').id == ""

    @pytest.mark.parametrize("raw", ['{"id":true}', '{"id":[1]}', '{"id":{"a":1}}'])
    def test_other_types_rejected(self, raw):
        """Non string/number IDs fail validation."""
        with pytest.raises(ValidationError):
            BaseInfo.model_validate_json(raw)

    def test_serialize_omits_empty_fields(self):
        """Stored form omits default-valued fields."""
        assert encode_record(BaseInfo(id="123")) == b'{"id":"123"}'

    def test_get_base_info_returns_self(self):
        """Embedding records expose their identity block."""
        record = SampleRecord(id="1", foo="f")

        assert record.get_base_info() is record


class TestCapabilities:
    """Tests for the optional capability protocols."""

    def test_prefixer_detected_on_class(self):
        """A key_prefix classmethod satisfies Prefixer."""
        assert isinstance(SampleRecord, Prefixer)
        assert not isinstance(Foo, Prefixer)

    def test_has_base_info(self):
        """BaseInfo subclasses satisfy HasBaseInfo."""
        assert isinstance(SampleRecord(), HasBaseInfo)
        assert not isinstance(Foo(), HasBaseInfo)


class TestDefaultSort:
    """Tests for the default list ordering."""

    def test_update_time_descending(self):
        """Newest update first."""
        rows = [
            SampleRecord(id="1", create_time=11, update_time=111),
            SampleRecord(id="2", create_time=22, update_time=22),
            SampleRecord(id="3", create_time=33, update_time=333),
        ]

        ordered = sorted(rows, key=default_sort_key)

        assert [r.update_time for r in ordered] == [333, 111, 22]

    def test_create_time_breaks_ties(self):
        """Equal update times fall back to newest create first."""
        rows = [
            SampleRecord(id="a", create_time=1, update_time=5),
            SampleRecord(id="b", create_time=2, update_time=5),
        ]

        ordered = sorted(rows, key=default_sort_key)

        assert [r.id for r in ordered] == ["b", "a"]

    def test_id_ascending_breaks_ties(self):
        """Equal timestamps fall back to lexicographic ID."""
        rows = [SampleRecord(id=i, update_time=1) for i in ("3", "10", "2")]

        ordered = sorted(rows, key=default_sort_key)

        assert [r.id for r in ordered] == ["10", "2", "3"]

    def test_records_without_base_info(self):
        """Records without base info keep their relative order."""
        rows = [Foo(bar="x"), SampleRecord(id="1", update_time=1), Foo(bar="y")]

        ordered = sorted(rows, key=default_sort_key)

        assert ordered[0].id == "1"
        assert [r.bar for r in ordered[1:]] == ["x", "y"]


class TestListOutput:
    """Tests for ListOutput."""

    def test_json_field_names(self):
        """Serializes as rows/total_size."""
        out = ListOutput(rows=[{"a": 1}], total_size=3)

        assert out.model_dump() == {"rows": [{"a": 1}], "total_size": 3}

    def test_defaults(self):
        """Empty output by default."""
        out = ListOutput()

        assert out.rows == []
        assert out.total_size == 0
