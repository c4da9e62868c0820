import ast
from pathlib import Path


def test_no_print_statements():
    root = Path(__file__).resolve().parents[2]
    sources = list((root / "personal_mix").rglob("*.py"))
    offenders = []
    for path in sources:
        tree = ast.parse(path.read_text(encoding="utf-8"))
        for node in ast.walk(tree):
            if isinstance(node, ast.Call):
                func = node.func
                if isinstance(func, ast.Name) and func.id == "print":
                    offenders.append(str(path))
    assert sources
    assert not offenders, f"print() calls remain in: {offenders}"
