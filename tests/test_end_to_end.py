import shutil

import pytest
import yaml

import run

requires_compiler = pytest.mark.skipif(
    shutil.which(run.default_compiler()) is None,
    reason="no C++ compiler on PATH",
)


@pytest.fixture(scope="module")
def build_dir(tmp_path_factory):
    return tmp_path_factory.mktemp("build")


@pytest.fixture(scope="module")
def matcher(build_dir):
    built = {}

    def match(pattern, text):
        if pattern not in built:
            built[pattern] = run.build_matcher(pattern, build_dir)
        return run.run_matcher(built[pattern], text)

    return match


@requires_compiler
@pytest.mark.parametrize("pattern,text,expected", [
    ("a+b", "aaab", True),
    ("a+b", "b", False),
    ("(ab)*", "", True),
    ("(ab)*", "ababab", True),
    ("(ab)*", "aba", False),
    ("a", "a", True),
    ("a", "aa", False),
    ("ab(cd)ef", "abcdef", True),
    ("ab(cd)ef", "abcef", False),
    # Quantifiers never give back what they consumed
    ("a*a", "aa", False),
    ("(a*)*b", "aaab", True),
    ("(a*)+", "", True),
])
def test_known_matches(matcher, pattern, text, expected):
    assert matcher(pattern, text) is expected


@requires_compiler
@pytest.mark.parametrize("pattern", ["a+b", "(ab)+", "a*b*", "(a(b)+)+c", "X1*0"])
def test_agrees_with_reference(matcher, pattern):
    inputs = ["", "a", "b", "ab", "abb", "aab", "abab", "ababc", "abbabc", "X", "X1110", "X0", "c"]
    for text in inputs:
        assert matcher(pattern, text) == run.reference_match(pattern, text), text


@requires_compiler
def test_identical_programs_share_one_binary(build_dir):
    first = run.build_matcher("(xy)+z", build_dir)
    second = run.build_matcher("(xy)+z", build_dir)
    assert first == second
    assert first.exists()
    assert first.with_suffix(".cpp").exists()


def test_invalid_pattern_never_reaches_the_compiler(tmp_path):
    with pytest.raises(ValueError):
        run.build_matcher("(ab", tmp_path)
    assert list(tmp_path.iterdir()) == []


def test_missing_compiler_is_a_build_error(tmp_path):
    source = run.write_program(run.generate_program("a"), tmp_path)
    with pytest.raises(run.BuildError):
        run.build_cpp(source, cxx="definitely-not-a-compiler-xyz")


def test_program_digest_names_the_source(tmp_path):
    program = run.generate_program("ab")
    source = run.write_program(program, tmp_path)
    assert source.name == f"{run.program_digest(program)}.cpp"
    assert source.read_text(encoding="utf-8") == program


@pytest.mark.parametrize("pattern,expected", [
    ("a+b", "a++b"),
    ("(ab)*", "(ab)*+"),
    ("(a*)+", "(a*+)++"),
])
def test_possessive_regex(pattern, expected):
    assert run.possessive_regex(pattern) == expected


def test_reference_is_greedy_without_backtracking():
    assert run.reference_match("a*a", "aa") is False
    assert run.reference_match("(ab)*", "aba") is False
    assert run.reference_match("(ab)*", "") is True


def run_cli(monkeypatch, *argv):
    monkeypatch.setattr("sys.argv", ["run.py", *argv])
    with pytest.raises(SystemExit) as excinfo:
        run.main()
    return excinfo.value.code


@pytest.fixture
def config_file(tmp_path):
    config = {
        "inputs": {"a_and_b": ["", "a", "ab", "aab", "b"]},
        "patterns": [
            {"name": "a_then_b", "pattern": "a+b", "inputs": ["a_and_b"]},
            {"name": "pairs", "pattern": "(ab)*", "inputs": ["a_and_b"]},
        ],
    }
    path = tmp_path / "config.yaml"
    path.write_text(yaml.safe_dump(config), encoding="utf-8")
    return path


@requires_compiler
def test_match_command_exit_codes(monkeypatch, capsys, build_dir):
    assert run_cli(monkeypatch, "match", "a+b", "aaab", "--build-dir", str(build_dir)) == 0
    assert "Input 'aaab' matched!" in capsys.readouterr().out

    assert run_cli(monkeypatch, "match", "(ab)*", "aba", "--build-dir", str(build_dir)) == 1
    assert "Input 'aba' failed to match." in capsys.readouterr().err


def test_match_command_rejects_bad_pattern(monkeypatch, capsys, tmp_path):
    assert run_cli(monkeypatch, "match", "(ab", "ab", "--build-dir", str(tmp_path)) == 1
    assert "Error parsing pattern: unbalanced parentheses" in capsys.readouterr().err
    assert list(tmp_path.iterdir()) == []


@requires_compiler
def test_test_command_passes(monkeypatch, capsys, config_file, build_dir):
    code = run_cli(monkeypatch, "test", "-c", str(config_file), "--build-dir", str(build_dir))
    out = capsys.readouterr().out
    assert code == 0
    assert "### Testing: a_then_b ###" in out
    assert "### Testing: pairs ###" in out
    assert "ALL 2 TEST(S) PASSED" in out


@requires_compiler
def test_test_command_reports_mismatch(monkeypatch, capsys, config_file, build_dir):
    monkeypatch.setattr(run, "reference_match", lambda pattern, text: text == "b")
    code = run_cli(monkeypatch, "test", "-c", str(config_file), "--build-dir", str(build_dir))
    out = capsys.readouterr().out
    assert code == 1
    assert "=== MISMATCH on test" in out
    assert "SOME TESTS FAILED" in out


@requires_compiler
def test_test_command_filters_by_name(monkeypatch, capsys, config_file, build_dir):
    code = run_cli(monkeypatch, "test", "-c", str(config_file), "-n", "pairs", "--build-dir", str(build_dir))
    out = capsys.readouterr().out
    assert code == 0
    assert "### Testing: pairs ###" in out
    assert "a_then_b" not in out
    assert "ALL 1 TEST(S) PASSED" in out


def test_test_command_unknown_name(monkeypatch, capsys, config_file, tmp_path):
    code = run_cli(monkeypatch, "test", "-c", str(config_file), "-n", "missing", "--build-dir", str(tmp_path))
    assert code == 1
    assert "No pattern named 'missing' found" in capsys.readouterr().out


def test_test_command_lists_patterns(monkeypatch, capsys, config_file):
    assert run_cli(monkeypatch, "test", "-c", str(config_file), "--list") == 0
    out = capsys.readouterr().out
    assert f"Available patterns in {config_file}:" in out
    assert "  - a_then_b: a+b  inputs=[a_and_b]" in out
    assert "  - pairs: (ab)*  inputs=[a_and_b]" in out


def test_load_config_rejects_non_dict(tmp_path, capsys):
    path = tmp_path / "config.yaml"
    path.write_text("- a+b\n- (ab)*\n", encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        run.load_config(path)
    assert excinfo.value.code == 1
    assert "Expected dict in config file" in capsys.readouterr().err


def test_load_config_missing_file(tmp_path, capsys):
    with pytest.raises(SystemExit) as excinfo:
        run.load_config(tmp_path / "nope.yaml")
    assert excinfo.value.code == 1
    assert "Config file not found" in capsys.readouterr().out
