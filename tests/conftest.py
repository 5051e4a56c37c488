from pathlib import Path

import pytest

from idlbind import BindingOptions, GenerationSession, IDLParser, generate_bindings

SAMPLES_IDL = Path(__file__).resolve().parent.parent / "samples" / "samples.idl"


def make_session(text: str, **options) -> GenerationSession:
    return GenerationSession(IDLParser(text).parse(), BindingOptions(**options))


def generate(text: str, **options):
    return generate_bindings(IDLParser(text).parse(), BindingOptions(**options))


def js_block(script: str, header: str) -> str:
    """Text from ``header`` up to the end of that member or class"""
    start = script.index(header)
    end = script.index("\n  }\n", start)
    return script[start:end]


@pytest.fixture
def samples_text():
    return SAMPLES_IDL.read_text()
