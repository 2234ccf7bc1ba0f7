"""Tests for config.schema module."""

import pytest
from pydantic import ValidationError

from config.schema import ContentConfig, EditorSettings, GitHubConfig, PublishConfig


class TestGitHubConfig:
    def test_trailing_slash_stripped(self):
        assert GitHubConfig(api_url="https://ghe.example.com/api/v3/").api_url == "https://ghe.example.com/api/v3"

    def test_blank_token_is_none(self):
        assert GitHubConfig(token="   ").token is None

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValidationError):
            GitHubConfig(request_timeout=0)


class TestPublishConfig:
    def test_batch_size_positive(self):
        with pytest.raises(ValidationError):
            PublishConfig(blob_batch_size=0)


class TestContentConfig:
    def test_paths_are_repo_relative(self):
        config = ContentConfig(posts_dir="/content/posts/")
        assert config.posts_dir == "content/posts"

    @pytest.mark.parametrize("bad", ["", "/", "../outside"])
    def test_rejects_bad_paths(self, bad):
        with pytest.raises(ValidationError):
            ContentConfig(theme_path=bad)


def test_editor_settings_defaults():
    settings = EditorSettings()
    assert settings.publish.default_message.format(count=3) == "Publish 3 change(s)"
    assert settings.storage.persist_drafts is True
