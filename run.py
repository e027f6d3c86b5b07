#!/usr/bin/env python3
"""
Build and test runner for the pattern-to-C++ converter.

Orchestrates:
1. Generating a C++ program from a pattern
2. Compiling it with the system C++ compiler
3. Running the binary on input strings (exit status 0 = whole input matched)
4. Checking results against Python's re module (test mode)

Usage:
    python run.py match 'a+b' aaab          # Build and run a single input
    python run.py test                      # Run all tests from config.yaml
    python run.py test -n repeated_group    # Test specific pattern
    python run.py test --cxx clang++        # Use a different compiler
"""

import argparse
import hashlib
import io
import os
import re
import subprocess
import sys
import yaml
from pathlib import Path

from pattern_to_cpp import generate_program

# Ensure UTF-8 output on Windows
if sys.platform == 'win32':
    sys.stdout = io.TextIOWrapper(sys.stdout.buffer, encoding='utf-8', errors='replace')
    sys.stderr = io.TextIOWrapper(sys.stderr.buffer, encoding='utf-8', errors='replace')

# Paths
ROOT_DIR = Path(__file__).parent
DEFAULT_BUILD_DIR = ROOT_DIR / "build"

CXX_FLAGS = ["-std=c++17", "-O2"]

# Exit statuses of the generated harness
EXIT_MATCH = 0
EXIT_NO_MATCH = 1


class BuildError(RuntimeError):
    """The generated program could not be compiled."""


class HarnessError(RuntimeError):
    """A compiled matcher exited with an unexpected status."""


def default_compiler() -> str:
    return os.environ.get("CXX", "c++")


# =============================================================================
# Build Orchestration
# =============================================================================

def program_digest(program: str) -> str:
    """SHA-256 of the program text; names both the source and the binary."""
    return hashlib.sha256(program.encode('utf-8')).hexdigest()


def write_program(program: str, build_dir: Path) -> Path:
    """Write the program to <build_dir>/<digest>.cpp and return the path."""
    build_dir.mkdir(parents=True, exist_ok=True)
    source = build_dir / f"{program_digest(program)}.cpp"
    source.write_text(program, encoding='utf-8')
    return source


def get_executable(source: Path) -> Path:
    exe_path = source.with_suffix("")
    if sys.platform == 'win32':
        exe_path = exe_path.with_suffix(".exe")
    return exe_path


def build_cpp(source: Path, cxx: str = None, verbose: bool = False) -> Path:
    """Compile a generated program; returns the executable path.

    Sources are content-addressed, so an existing executable is reused.
    """
    exe_path = get_executable(source)
    if exe_path.exists():
        return exe_path

    cmd = [cxx or default_compiler(), *CXX_FLAGS, str(source), "-o", str(exe_path)]

    try:
        if verbose:
            result = subprocess.run(cmd, text=True)
        else:
            result = subprocess.run(cmd, capture_output=True, text=True)
    except FileNotFoundError as e:
        raise BuildError(f"C++ compiler not found: {cmd[0]}") from e

    if result.returncode != 0:
        raise BuildError(f"Build failed: {result.stderr or ''}\n{result.stdout or ''}".strip())

    return exe_path


def build_matcher(pattern: str, build_dir: Path = DEFAULT_BUILD_DIR,
                  cxx: str = None, verbose: bool = False) -> Path:
    """Generate, write and compile the matcher for a pattern.

    Raises PatternError (a ValueError) for an invalid pattern and BuildError
    if compilation fails.
    """
    program = generate_program(pattern)
    source = write_program(program, build_dir)
    if verbose:
        print(f"Generated: {source}")
    return build_cpp(source, cxx, verbose)


def run_matcher(exe_path: Path, text: str) -> bool:
    """Run a compiled matcher on one input; True if the whole input matched."""
    result = subprocess.run(
        [str(exe_path), text],
        capture_output=True,
        text=True,
        encoding='utf-8'
    )

    if result.returncode == EXIT_MATCH:
        return True
    if result.returncode == EXIT_NO_MATCH:
        return False
    raise HarnessError(
        f"{exe_path.name} exited with status {result.returncode}: {result.stderr.strip()}")


# =============================================================================
# Reference Matching
# =============================================================================

def possessive_regex(pattern: str) -> str:
    """Translate a pattern into Python re syntax with possessive quantifiers.

    Generated matchers never give back a quantifier iteration, which is what
    *+ and ++ mean to re (Python 3.11+).
    """
    return re.sub(r"([*+])", r"\1+", pattern)


def reference_match(pattern: str, text: str) -> bool:
    """Whether the whole text matches the pattern, according to re."""
    return re.fullmatch(possessive_regex(pattern), text) is not None


def compare_results(pattern: str, results: list[bool], test_strings: list[str]) -> bool:
    """Compare matcher results against the reference, report differences."""
    all_match = True

    for i, (got, text) in enumerate(zip(results, test_strings)):
        expected = reference_match(pattern, text)
        if got != expected:
            all_match = False
            print(f"\n=== MISMATCH on test {i} ===")
            print(f"Input:     {text!r}")
            print(f"C++:       {'match' if got else 'no match'}")
            print(f"Reference: {'match' if expected else 'no match'}")

    return all_match


# =============================================================================
# CLI Commands
# =============================================================================

def load_config(config_path: Path) -> dict:
    """Load and validate configuration file."""
    if not config_path.exists():
        print(f"Error: Config file not found: {config_path}")
        print("Create a config.yaml file or specify one with --config")
        sys.exit(1)

    with open(config_path, encoding='utf-8') as f:
        config = yaml.safe_load(f)

    if not isinstance(config, dict):
        print(f"Error: Expected dict in config file with 'inputs' and 'patterns' keys", file=sys.stderr)
        sys.exit(1)

    return config


def list_patterns(config: dict, config_path: Path):
    """List available patterns from config."""
    print(f"Available patterns in {config_path}:")
    for p in config.get("patterns", []):
        name = p.get("name", "unnamed")
        pattern = p.get("pattern", "")
        input_names = ", ".join(p.get("inputs", []))
        print(f"  - {name}: {pattern}  inputs=[{input_names}]")

    print(f"\nAvailable inputs:")
    for input_name, strings in config.get("inputs", {}).items():
        print(f"  - {input_name}: {len(strings)} strings")


def run_single_pattern(pattern: str, test_strings: list[str], build_dir: Path,
                       cxx: str = None, verbose: bool = False) -> bool:
    """Run a complete test cycle for a pattern."""
    print(f"\n{'='*60}")
    print(f"Pattern: {pattern}")
    print(f"Reference: re.fullmatch ({possessive_regex(pattern)})")
    print(f"Test strings: {len(test_strings)}")
    print('='*60)

    # Step 1: Generate and build
    print("\n[1/3] Generating and building C++ code...")
    try:
        exe_path = build_matcher(pattern, build_dir, cxx, verbose)
    except ValueError as e:
        print(f"Error parsing pattern: {e}", file=sys.stderr)
        return False
    except BuildError as e:
        print(e, file=sys.stderr)
        return False
    print(f"Build successful: {exe_path}")

    # Step 2: Run the matcher
    print("\n[2/3] Running C++ matcher...")
    try:
        results = [run_matcher(exe_path, text) for text in test_strings]
    except HarnessError as e:
        print(f"C++ execution failed: {e}", file=sys.stderr)
        return False

    # Step 3: Compare
    print("\n[3/3] Comparing with reference...")
    all_match = compare_results(pattern, results, test_strings)

    if all_match:
        print(f"\nSUCCESS: All {len(test_strings)} tests passed!")
    else:
        print(f"\nFAILED: Some tests did not match")

    if verbose:
        print("\n--- Detailed Results ---")
        for text, got in zip(test_strings, results):
            status = "OK" if got == reference_match(pattern, text) else "FAIL"
            print(f"[{status}] {text!r}: {'match' if got else 'no match'}")

    return all_match


def cmd_match(args):
    """Build the matcher for one pattern and run it on one input."""
    try:
        exe_path = build_matcher(args.pattern, Path(args.build_dir), args.cxx, args.verbose)
    except ValueError as e:
        print(f"Error parsing pattern: {e}", file=sys.stderr)
        return 1
    except BuildError as e:
        print(e, file=sys.stderr)
        return 1

    if args.verbose:
        print(f"Binary: {exe_path}")

    try:
        matched = run_matcher(exe_path, args.input)
    except HarnessError as e:
        print(f"C++ execution failed: {e}", file=sys.stderr)
        return 1

    if matched:
        print(f"Input {args.input!r} matched!")
        return 0
    print(f"Input {args.input!r} failed to match.", file=sys.stderr)
    return 1


def cmd_test(args):
    """Run tests (correctness verification against re)."""
    config_path = Path(args.config)
    config = load_config(config_path)

    if args.list:
        list_patterns(config, config_path)
        return 0

    inputs_config = config.get("inputs", {})
    patterns = config.get("patterns", [])

    if not isinstance(patterns, list):
        print(f"Error: 'patterns' should be a list", file=sys.stderr)
        return 1

    # Filter by name if specified
    if args.name:
        patterns = [p for p in patterns if p.get("name") == args.name]
        if not patterns:
            print(f"Error: No pattern named '{args.name}' found")
            return 1

    all_success = True
    total_runs = 0

    for test_case in patterns:
        name = test_case.get("name", "unnamed")
        pattern = test_case.get("pattern")
        input_names = test_case.get("inputs", [])

        if not pattern:
            print(f"Error: Pattern '{name}' missing 'pattern'", file=sys.stderr)
            all_success = False
            continue

        test_strings = []
        for input_name in input_names:
            if input_name not in inputs_config:
                print(f"Error: Input '{input_name}' not found in inputs config", file=sys.stderr)
                all_success = False
                continue
            test_strings.extend(str(s) for s in inputs_config[input_name])

        if not test_strings:
            print(f"Warning: No test strings loaded for {name}", file=sys.stderr)
            continue

        print(f"\n### Testing: {name} ###")
        if not run_single_pattern(pattern, test_strings, Path(args.build_dir), args.cxx, args.verbose):
            all_success = False
        total_runs += 1

    print(f"\n{'='*60}")
    if all_success:
        print(f"ALL {total_runs} TEST(S) PASSED")
    else:
        print(f"SOME TESTS FAILED")
    print(f"{'='*60}")

    return 0 if all_success else 1


def main():
    parser = argparse.ArgumentParser(
        description="Pattern-to-C++ build and test runner",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  match   Build the matcher for a pattern and run it on one input
  test    Run correctness tests (generated C++ vs Python re)

Config file format (YAML):
  inputs:
    letters: ["", "a", "ab"]
  patterns:
    - name: plus_then_literal
      pattern: "a+b"
      inputs: [letters]

Examples:
  python run.py match 'a+b' aaab        # Exit status 0: matched
  python run.py test                    # Run all tests
  python run.py test -n plus_then_literal
  python run.py test -l                 # List patterns and inputs
"""
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # Common arguments
    def add_common_args(p):
        p.add_argument("--cxx", default=None,
                       help="C++ compiler (default: $CXX or c++)")
        p.add_argument("--build-dir", default=str(DEFAULT_BUILD_DIR),
                       help=f"Directory for generated sources and binaries (default: {DEFAULT_BUILD_DIR})")
        p.add_argument("--verbose", "-v", action="store_true", help="Verbose output")

    # Match subcommand
    match_parser = subparsers.add_parser("match", help="Match one input against a pattern")
    match_parser.add_argument("pattern", help="The pattern to compile")
    match_parser.add_argument("input", help="The input string to match")
    add_common_args(match_parser)
    match_parser.set_defaults(func=cmd_match)

    # Test subcommand
    test_parser = subparsers.add_parser("test", help="Run correctness tests")
    test_parser.add_argument("--config", "-c", default="config.yaml",
                             help="YAML config file (default: config.yaml)")
    test_parser.add_argument("--name", "-n", help="Run only the pattern with this name")
    test_parser.add_argument("--list", "-l", action="store_true", help="List available patterns")
    add_common_args(test_parser)
    test_parser.set_defaults(func=cmd_test)

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
