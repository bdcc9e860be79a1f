"""Tests for model selection and catalog matching."""

import pytest

from vastlink.domain.provision.models import ModelThresholds
from vastlink.domain.provision.selection import (
    build_model_candidates,
    is_model_listed,
    normalize_model_name,
    select_model,
)

DEFAULT = ModelThresholds()


class TestSelectModel:
    @pytest.mark.parametrize(
        "capacity,expected",
        [(0, "7b"), (9, "7b"), (10, "14b"), (15, "14b"), (16, "30b"), (80, "30b")],
    )
    def test_coder_tiers(self, capacity, expected):
        assert select_model("qwen3-coder", None, capacity, DEFAULT) == f"qwen3-coder:{expected}"

    @pytest.mark.parametrize(
        "capacity,expected",
        [(8, "4b"), (10, "8b"), (11, "8b"), (12, "14b"), (15, "14b"), (16, "30b")],
    )
    def test_general_tiers(self, capacity, expected):
        assert select_model("qwen3", None, capacity, DEFAULT) == f"qwen3:{expected}"

    def test_override_ignores_capacity(self):
        for capacity in (0, 12, 100):
            assert select_model("qwen3-coder", "llama3.1:8b", capacity, DEFAULT) == "llama3.1:8b"

    def test_custom_thresholds(self):
        thresholds = ModelThresholds(low=20, mid=30, high=40)
        assert select_model("qwen3-coder", None, 24, thresholds) == "qwen3-coder:14b"
        assert select_model("qwen3-coder", None, 40, thresholds) == "qwen3-coder:30b"

    def test_threshold_validation(self):
        with pytest.raises(ValueError):
            ModelThresholds(low=16, mid=12, high=10).validate()


class TestCandidates:
    def test_fallback_order_with_sibling(self):
        assert build_model_candidates("qwen3-coder:14b") == [
            "qwen3-coder:14b",
            "qwen3-coder",
            "qwen3-coder:latest",
            "qwen2.5-coder:14b",
            "qwen2.5-coder",
            "qwen2.5-coder:latest",
        ]

    def test_untagged_primary_deduplicates(self):
        assert build_model_candidates("llama3") == ["llama3", "llama3:latest"]

    def test_no_sibling(self):
        assert build_model_candidates("mistral:7b") == ["mistral:7b", "mistral", "mistral:latest"]


class TestCatalog:
    CATALOG = (
        "NAME                 ID              SIZE      MODIFIED\n"
        "qwen3-coder:14b      a1b2c3d4e5f6    9.0 GB    2 hours ago\n"
        "Llama3:latest        0f9e8d7c6b5a    4.7 GB    3 days ago\n"
    )

    def test_normalize(self):
        assert normalize_model_name("llama3") == "llama3:latest"
        assert normalize_model_name("llama3:8b") == "llama3:8b"
        assert normalize_model_name("") == ""

    def test_tagged_match(self):
        assert is_model_listed(self.CATALOG, "qwen3-coder:14b")
        assert not is_model_listed(self.CATALOG, "qwen3-coder:30b")

    def test_bare_name_matches_latest_case_insensitively(self):
        assert is_model_listed(self.CATALOG, "llama3")
        assert is_model_listed(self.CATALOG, "LLAMA3:latest")

    def test_empty(self):
        assert not is_model_listed("", "llama3")
        assert not is_model_listed(self.CATALOG, "")
