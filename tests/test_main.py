"""
Tests for the command line interface.
"""
import matplotlib

matplotlib.use("Agg")
from typer.testing import CliRunner

from crispr_reproducibility.main import app

runner = CliRunner()


class TestCli:
    def test_info(self):
        result = runner.invoke(app, ["info"])
        assert result.exit_code == 0
        assert "crispr-reproducibility" in result.output
        assert "pandas" in result.output

    def test_run_and_summary(self, screen_csv, tmp_path):
        output_dir = tmp_path / "out"
        result = runner.invoke(
            app,
            ["run", str(screen_csv), "-o", str(output_dir), "--no-plots", "-k", "1"],
        )
        assert result.exit_code == 0, result.output
        assert (output_dir / "summary.tsv").exists()
        assert "Grouping records" in result.output

        result = runner.invoke(app, ["summary", str(output_dir)])
        assert result.exit_code == 0
        assert "fold_change" in result.output

    def test_run_missing_file(self, tmp_path):
        result = runner.invoke(
            app, ["run", str(tmp_path / "missing.csv"), "-o", str(tmp_path)]
        )
        assert result.exit_code != 0
