"""Unit tests for the __main__ module."""

from unittest.mock import patch

from star_manager import __main__


class TestMainModule:
    """Tests for __main__.py entry point."""

    def test_main_function_is_imported_from_cli(self):
        from star_manager.cli.commands import main

        assert __main__.main is main

    @patch("star_manager.cli.commands.main")
    def test_runpy_invokes_main(self, mock_main):
        import runpy

        runpy.run_module("star_manager", run_name="__main__", alter_sys=False)
        mock_main.assert_called_once()

    @patch("star_manager.cli.commands.cli")
    def test_main_delegates_to_cli(self, mock_cli):
        from star_manager.cli.commands import main

        main()
        mock_cli.assert_called_once()
