import pytest

from flowspec.cli import main

VALID_YAML = """
document:
  dsl: 1.0.0
  namespace: examples
  name: example-workflow
  version: 1.0.0
do:
  - task1:
      call: http
      with:
        method: GET
        endpoint: http://example.com
"""


@pytest.fixture
def examples(tmp_path):
    directory = tmp_path / "examples"
    (directory / "nested").mkdir(parents=True)
    (directory / "a.yaml").write_text(VALID_YAML)
    (directory / "nested" / "b.yml").write_text(VALID_YAML)
    (directory / "notes.txt").write_text("not a workflow")
    return directory


def test_no_arguments_prints_usage(capsys):
    assert main([]) == 1
    assert "Usage" in capsys.readouterr().out


def test_all_valid(examples, capsys):
    assert main([str(examples)]) == 0
    out = capsys.readouterr().out
    assert f"Validating: {examples / 'a.yaml'}" in out
    assert f"Validation succeeded for {examples / 'nested' / 'b.yml'}" in out
    assert "notes.txt" not in out
    assert out.rstrip().endswith("All workflows validated successfully.")


def test_invalid_file_counts_failure(examples, capsys):
    (examples / "broken.json").write_text("{not json")
    assert main([str(examples)]) == 1
    out = capsys.readouterr().out
    assert f"Validation failed for {examples / 'broken.json'}" in out
    assert "Validation failed for 1 file(s)." in out


def test_missing_directory(tmp_path, capsys):
    missing = tmp_path / "missing"
    assert main([str(missing)]) == 1
    assert f"Error walking the path {missing}" in capsys.readouterr().out


def test_files_validated_in_order(examples, capsys):
    main([str(examples)])
    lines = [
        line for line in capsys.readouterr().out.splitlines()
        if line.startswith("Validating: ")
    ]
    assert lines == sorted(lines)
    assert len(lines) == 2