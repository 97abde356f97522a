"""CLI smoke tests using typer's CliRunner."""

import yaml
from typer.testing import CliRunner

from pipeline_migrate.cli import app

from samples import GITHUB_WORKFLOW, GITLAB_CI

runner = CliRunner()


def _write(tmp_path, name, text):
    path = tmp_path / name
    path.write_text(text)
    return path


class TestConvertCommand:
    def test_convert_github(self, tmp_path):
        path = _write(tmp_path, "ci.yml", GITHUB_WORKFLOW)
        result = runner.invoke(app, ["convert", "github", str(path)])
        assert result.exit_code == 0, result.output
        document = yaml.safe_load(result.stdout)
        assert document["version"] == 1
        assert [s["name"] for s in document["spec"]["stages"]] == ["build", "Windows build"]

    def test_convert_with_downgrade(self, tmp_path):
        path = _write(tmp_path, ".gitlab-ci.yml", GITLAB_CI)
        result = runner.invoke(
            app,
            ["convert", "gitlab", str(path), "--downgrade", "--org", "acme", "--kube-connector", "k8s"],
        )
        assert result.exit_code == 0, result.output
        document = yaml.safe_load(result.stdout)
        assert document["pipeline"]["orgIdentifier"] == "acme"
        stage = document["pipeline"]["stages"][0]["stage"]
        assert stage["spec"]["infrastructure"]["type"] == "KubernetesDirect"

    def test_before_after(self, tmp_path):
        path = _write(tmp_path, "ci.yml", GITHUB_WORKFLOW)
        result = runner.invoke(app, ["convert", "github", str(path), "--before-after"])
        assert result.exit_code == 0
        before, after = result.stdout.split("\n---\n", 1)
        assert "runs-on: ubuntu-latest" in before
        assert after.startswith("version: 1")

    def test_json_format(self, tmp_path):
        path = _write(tmp_path, "ci.yml", GITHUB_WORKFLOW)
        result = runner.invoke(app, ["convert", "github", str(path), "--format", "json"])
        assert result.exit_code == 0
        assert result.stdout.lstrip().startswith("{")

    def test_unsupported_dialect(self, tmp_path):
        path = _write(tmp_path, "azure-pipelines.yml", "trigger: [main]\n")
        result = runner.invoke(app, ["convert", "azure", str(path)])
        assert result.exit_code == 1
        assert "Unsupported dialect" in result.output

    def test_missing_file(self, tmp_path):
        result = runner.invoke(app, ["convert", "github", str(tmp_path / "nope.yml")])
        assert result.exit_code == 1
        assert "cannot read" in result.output

    def test_malformed_source(self, tmp_path):
        path = _write(tmp_path, "ci.yml", "jobs: [")
        result = runner.invoke(app, ["convert", "github", str(path)])
        assert result.exit_code == 1
        assert "Failed to parse" in result.output


class TestDowngradeCommand:
    def test_downgrade_canonical_file(self, tmp_path):
        source = _write(tmp_path, "ci.yml", GITHUB_WORKFLOW)
        converted = runner.invoke(app, ["convert", "github", str(source)])
        canonical = _write(tmp_path, "v1.yml", converted.stdout)

        result = runner.invoke(app, ["downgrade", str(canonical), "--project", "web"])
        assert result.exit_code == 0, result.output
        document = yaml.safe_load(result.stdout)
        assert document["pipeline"]["projectIdentifier"] == "web"
        assert document["pipeline"]["orgIdentifier"] == "default"

    def test_downgrade_invalid_document(self, tmp_path):
        path = _write(tmp_path, "v1.yml", "- not\n- a pipeline\n")
        result = runner.invoke(app, ["downgrade", str(path)])
        assert result.exit_code == 1


class TestBatchCommand:
    def test_batch_writes_outputs_and_reports_failures(self, tmp_path):
        good = _write(tmp_path, "good.yml", GITHUB_WORKFLOW)
        bad = _write(tmp_path, "bad.yml", "jobs: [")
        out_dir = tmp_path / "out"

        result = runner.invoke(app, ["batch", "github", str(bad), str(good), "--out-dir", str(out_dir)])
        assert result.exit_code == 1
        assert "FAILED" in result.output
        assert (out_dir / "good.yaml").exists()
        assert not (out_dir / "bad.yaml").exists()

    def test_unreadable_file_does_not_stop_batch(self, tmp_path):
        good = _write(tmp_path, "good.yml", GITLAB_CI)
        out_dir = tmp_path / "out"

        result = runner.invoke(
            app, ["batch", "gitlab", str(tmp_path / "missing.yml"), str(good), "--out-dir", str(out_dir)]
        )
        assert result.exit_code == 1
        assert "FAILED" in result.output
        assert "missing.yml" in result.output
        assert (out_dir / "good.yaml").exists()

    def test_same_file_names_do_not_overwrite(self, tmp_path):
        (tmp_path / "a").mkdir()
        (tmp_path / "b").mkdir()
        first = _write(tmp_path / "a", "ci.yml", GITHUB_WORKFLOW)
        second = _write(tmp_path / "b", "ci.yml", GITHUB_WORKFLOW.replace("run: dir", "run: echo bye"))
        out_dir = tmp_path / "out"

        result = runner.invoke(app, ["batch", "github", str(first), str(second), "--out-dir", str(out_dir)])
        assert result.exit_code == 0, result.output
        assert sorted(p.name for p in out_dir.iterdir()) == ["ci-0.yaml", "ci-1.yaml"]
        assert "echo bye" in (out_dir / "ci-1.yaml").read_text()
        assert "echo bye" not in (out_dir / "ci-0.yaml").read_text()


class TestDialectsCommand:
    def test_lists_dialects(self):
        result = runner.invoke(app, ["dialects"])
        assert result.exit_code == 0
        for name in ["circle", "github", "gitlab", "jenkinsjson", "jenkinsxml"]:
            assert name in result.output
