"""Unit tests for label helpers."""

import logging
from ocsclient.common.models.labels import Labels, parse_labels


class TestParseLabels:
    """Tests for parse_labels()."""

    def test_trims_and_skips_blank_lines(self):
        assert parse_labels("team: storage\nenv:  prod\n\n") == {
            "team": "storage",
            "env": "prod",
        }

    def test_empty_and_none(self):
        assert parse_labels("") == {}
        assert parse_labels(None) == {}

    def test_value_may_contain_colons(self):
        assert parse_labels("url: http://example.com:8080") == {
            "url": "http://example.com:8080"
        }

    def test_empty_value_allowed(self):
        assert parse_labels("flag:") == {"flag": ""}

    def test_line_without_colon_skipped_with_warning(self, caplog):
        with caplog.at_level(logging.WARNING):
            labels = parse_labels("team: storage\nmalformed\nenv: prod")
        assert labels == {"team": "storage", "env": "prod"}
        assert "malformed" in caplog.text

    def test_empty_key_skipped(self):
        assert parse_labels(": value\nteam: storage") == {"team": "storage"}

    def test_last_duplicate_wins(self):
        assert parse_labels("team: a\nteam: b") == {"team": "b"}

    def test_whitespace_only_lines_skipped(self):
        assert parse_labels("   \n\tteam: storage  \n") == {"team": "storage"}


class TestLabels:
    """Tests for the Labels builder."""

    def test_default_labels(self):
        labels = Labels.generate_default_labels("csi-rbdplugin", "csi-nodeplugin")
        assert labels.as_dict() == {
            "app": "csi-rbdplugin",
            "app.kubernetes.io/name": "csi-rbdplugin",
            "app.kubernetes.io/component": "csi-nodeplugin",
            "app.kubernetes.io/part-of": "ocs-client-operator",
            "app.kubernetes.io/managed-by": "ocs-client-operator",
        }

    def test_subscription_selector(self):
        assert Labels.subscription_selector().as_str() == (
            "managed-by=webhook.subscription.ocs.openshift.io"
        )

    def test_contains(self):
        labels = Labels({"managed-by": "webhook.subscription.ocs.openshift.io", "x": "y"})
        assert labels.contains(Labels.subscription_selector())
        assert not Labels({"managed-by": "someone"}).contains(
            Labels.subscription_selector()
        )
