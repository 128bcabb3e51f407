"""
Unit tests for the 'normalize' and 'split' CLI commands.
"""

import json

import pytest
from click.testing import CliRunner

from vcsfetch.cli.main import main


class TestUrlCommands:

    @pytest.fixture
    def runner(self):
        return CliRunner()

    def test_normalize(self, runner):
        result = runner.invoke(main, ["normalize", "git+https://user:pw@GitHub.com/org/repo"])
        assert result.exit_code == 0, result.output
        assert result.output.strip() == "https://github.com/org/repo.git"

    def test_normalize_shortcut(self, runner):
        result = runner.invoke(main, ["normalize", "--shortcuts", "gitlab:group/project"])
        assert result.output.strip() == "https://gitlab.com/group/project.git"

    def test_split_json(self, runner):
        """Test JSON output of a GitHub tree URL."""
        result = runner.invoke(
            main,
            ["split", "--json", "https://github.com/babel/babel/tree/master/packages/babel-code-frame"],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {
            "provider": "Git",
            "url": "https://github.com/babel/babel.git",
            "revision": "master",
            "path": "packages/babel-code-frame",
        }

    def test_split_table(self, runner):
        result = runner.invoke(main, ["split", "https://bitbucket.org/paniq/masagin"])
        assert result.exit_code == 0, result.output
        assert "Mercurial" in result.output
