"""Tests for site config loading, normalisation and validation."""

from pathlib import Path

import pytest

from blogsite.config import (
    analytics_snippet,
    as_bool,
    as_int,
    author_html,
    find_config,
    is_valid_link,
    load_config,
    site_settings,
    validate_config,
)

REPO_ROOT = Path(__file__).resolve().parent.parent


def _config(**overrides) -> dict:
    config = {
        "baseURL": "http://example.dev/",
        "title": "Test Site",
        "outputs": {"home": ["HTML", "RSS", "JSON"]},
        "markup": {"highlight": {"lineNos": True, "noClasses": False}},
        "params": {
            "social": [
                {"name": "github", "url": "https://github.com/example"},
                {"name": "email", "url": "mailto:me@example.dev"},
            ]
        },
    }
    config.update(overrides)
    return config


class TestLoadConfig:
    def test_missing_file_is_empty(self, tmp_path):
        assert load_config(tmp_path / "config.yaml") == {}

    def test_yaml(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("title: Test Site\noutputs:\n  home: [HTML]\n", encoding="utf-8")
        assert load_config(path) == {"title": "Test Site", "outputs": {"home": ["HTML"]}}

    def test_empty_yaml_is_empty(self, tmp_path):
        path = tmp_path / "config.yaml"
        path.write_text("", encoding="utf-8")
        assert load_config(path) == {}

    def test_toml(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('title = "Test Site"\n[outputs]\nhome = ["HTML"]\n', encoding="utf-8")
        assert load_config(path)["outputs"]["home"] == ["HTML"]

    def test_invalid_yaml_exits(self, tmp_path, capsys):
        path = tmp_path / "config.yaml"
        path.write_text("title: [unclosed\n", encoding="utf-8")
        with pytest.raises(SystemExit) as exc:
            load_config(path)
        assert exc.value.code == 1
        assert "Invalid YAML" in capsys.readouterr().err

    def test_non_mapping_exits(self, tmp_path, capsys):
        path = tmp_path / "config.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(SystemExit):
            load_config(path)
        assert "must be a mapping" in capsys.readouterr().err

    def test_find_config_prefers_yaml(self, tmp_path):
        (tmp_path / "config.toml").write_text("", encoding="utf-8")
        (tmp_path / "config.yaml").write_text("", encoding="utf-8")
        assert find_config(tmp_path).name == "config.yaml"

    def test_repository_config_is_valid(self):
        raw = load_config(REPO_ROOT / "config.yaml")
        assert validate_config(raw) == []
        settings = site_settings(raw)
        assert settings["theme"] == "minima"
        assert [entry["name"] for entry in settings["social"]] == ["twitter", "email", "github", "rss"]
        assert settings["description"].startswith("Systems Engineer")


class TestSiteSettings:
    def test_defaults(self):
        settings = site_settings({})
        assert settings["theme"] == "minima"
        assert settings["language_code"] == "en-us"
        assert settings["outputs"] == ["HTML", "RSS", "JSON"]
        assert settings["highlight"] == {"line_nos": False, "no_classes": True, "style": "monokai"}
        assert settings["paginate"] == 10
        assert settings["rss_limit"] == -1
        assert settings["social"] == []
        assert settings["display_date"] is True

    def test_output_names_are_upper_cased(self):
        settings = site_settings({"outputs": {"home": ["html", "Rss"]}})
        assert settings["outputs"] == ["HTML", "RSS"]

    def test_highlight_flags(self):
        settings = site_settings(_config())
        assert settings["highlight"]["line_nos"] is True
        assert settings["highlight"]["no_classes"] is False

    def test_keys_are_case_insensitive(self):
        settings = site_settings({"baseurl": "http://example.dev/", "params": {"Description": "About me"}})
        assert settings["base_url"] == "http://example.dev/"
        assert settings["description"] == "About me"

    def test_author_keys_are_case_insensitive(self):
        settings = site_settings({"Author": {"Name": "Ada", "STATUS": "Writing"}})
        assert settings["author"]["name"] == "Ada"
        assert settings["author"]["status"] == "Writing"

    def test_social_order_is_kept(self):
        social = [{"name": name, "url": f"https://{name}.example"} for name in ("z", "a", "m")]
        settings = site_settings({"params": {"social": social}})
        assert [entry["name"] for entry in settings["social"]] == ["z", "a", "m"]


class TestValidateConfig:
    def test_valid(self):
        assert validate_config(_config()) == []

    def test_unknown_output_format(self):
        problems = validate_config(_config(outputs={"home": ["HTML", "ATOM"]}))
        assert len(problems) == 1
        assert "ATOM" in problems[0]

    def test_outputs_must_be_a_list(self):
        problems = validate_config(_config(outputs={"home": "HTML"}))
        assert problems == ["outputs.home must be a list"]

    def test_outputs_must_be_a_mapping(self):
        problems = validate_config(_config(outputs=["HTML", "ATOM"]))
        assert problems == ["outputs must be a mapping of page kinds to formats"]

    def test_social_entry_needs_name_and_url(self):
        params = {"social": [{"name": "", "url": "https://example.dev"}, {"name": "github", "url": ""}]}
        problems = validate_config(_config(params=params))
        assert problems == ["params.social[1]: missing name", "params.social[2] (github): missing url"]

    @pytest.mark.parametrize("url", ["not a url", "ftp://example.dev", "mailto:", "https://", "//example.dev"])
    def test_social_url_must_be_valid(self, url):
        problems = validate_config(_config(params={"social": [{"name": "x", "url": url}]}))
        assert len(problems) == 1
        assert "invalid url" in problems[0]

    def test_base_url_must_be_absolute(self):
        problems = validate_config(_config(baseURL="example.dev"))
        assert len(problems) == 1
        assert "baseURL" in problems[0]

    def test_highlight_flags_must_be_booleans(self):
        problems = validate_config(_config(markup={"highlight": {"lineNos": "yes"}}))
        assert problems == ["markup.highlight.lineNos must be true or false, got 'yes'"]


class TestIsValidLink:
    @pytest.mark.parametrize(
        "url",
        ["https://twitter.com/example", "http://example.dev/", "mailto:me@example.dev", "/index.xml"],
    )
    def test_valid(self, url):
        assert is_valid_link(url)

    @pytest.mark.parametrize("url", ["twitter.com/example", "mailto:nobody", "javascript:alert(1)", ""])
    def test_invalid(self, url):
        assert not is_valid_link(url)


class TestSnippets:
    def test_analytics_empty_without_id(self):
        assert analytics_snippet("") == ""

    def test_analytics_uses_id(self):
        snippet = analytics_snippet("G-C178BN4JD5")
        assert "googletagmanager.com/gtag/js?id=G-C178BN4JD5" in snippet
        assert "gtag('config', 'G-C178BN4JD5');" in snippet

    def test_author_description_renders_links(self):
        result = author_html("\nI write [tests](https://example.dev/tests).\n\nSecond paragraph.\n")
        assert '<a href="https://example.dev/tests">tests</a>' in result
        assert result.count("<p>") == 2

    def test_author_description_empty(self):
        assert author_html("  \n") == ""


class TestCoercion:
    @pytest.mark.parametrize("value", [True, 1, "true", "Yes", " on ", "1"])
    def test_truthy(self, value):
        assert as_bool(value) is True

    @pytest.mark.parametrize("value", [False, None, 0, "", "false", "no", "maybe", 1.0])
    def test_falsy(self, value):
        assert as_bool(value) is False

    def test_int(self):
        assert as_int(5, 10) == 5
        assert as_int(" 3 ", 10) == 3
        assert as_int("many", 10) == 10
        assert as_int(None, 10) == 10
        assert as_int(True, 10) == 10
