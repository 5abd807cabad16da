import pytest
from agents.architecture_agent import (
    default_architecture,
    file_type,
    infer_architecture_from_code,
)
from agents.ux_designer_agent import extract_ux_from_code

from models import UXDesign


@pytest.mark.parametrize(
    "name, expected",
    [
        ("Button.tsx", "component"),
        ("components/TodoList.jsx", "component"),
        ("useTodos.js", "hook"),
        ("hooks/useTodos.js", "hook"),
        ("lib/format.js", "util"),
        ("index.css", "util"),
    ],
)
def test_file_type(name, expected):
    assert file_type(name) == expected


def test_default_architecture_layout():
    architecture = default_architecture(
        ["App.jsx", "TodoList.jsx", "useTodos.js", "format.js"]
    )

    folders = {name: entry.folder for name, entry in architecture.file_structure.items()}
    assert folders == {
        "App.jsx": "root",
        "TodoList.jsx": "components/",
        "useTodos.js": "hooks/",
        "format.js": "lib/",
    }
    assert architecture.import_paths == {
        "App.jsx -> TodoList": "./components/TodoList",
        "App.jsx -> useTodos": "./hooks/useTodos",
    }
    assert architecture.is_fallback
    assert architecture.mode == "fallback"


def test_default_architecture_keeps_explicit_folders():
    architecture = default_architecture(["widgets/Card.jsx"])
    assert architecture.file_structure["widgets/Card.jsx"].folder == "widgets/"
    assert architecture.import_paths == {}


def test_infer_architecture_reads_imports_and_folders():
    artifacts = {
        "App.jsx": 'import React from "react";\nimport List from "./components/List";\n',
        "components/List.jsx": "export default function List() {}\n",
    }
    architecture = infer_architecture_from_code(artifacts)

    assert architecture.mode == "inferred"
    assert architecture.file_structure["App.jsx"].folder == "root"
    assert architecture.file_structure["components/List.jsx"].folder == "components/"
    assert architecture.dependencies["App.jsx"] == ["react", "./components/List"]
    assert list(architecture.folder_purposes) == ["components/"]


def test_extract_ux_from_dark_glass_code():
    styles = extract_ux_from_code(
        {
            "App.jsx": '<div className="bg-slate-900 text-cyan-400 rounded-2xl '
            'backdrop-blur-xl gap-4 border-slate-700">'
        }
    )

    assert styles["colorScheme"]["theme"] == "dark"
    assert styles["colorScheme"]["background"] == "bg-slate-900"
    assert styles["colorScheme"]["primary"] == "text-cyan-400"
    assert styles["colorScheme"]["border"] == "border-slate-700"
    assert styles["designStyle"]["aesthetic"] == "glassmorphism"
    assert styles["designStyle"]["corners"] == "rounded-2xl"
    assert styles["layoutStructure"]["spacing"] == "gap-4"


def test_extract_ux_from_light_code_validates_as_design():
    styles = extract_ux_from_code({"App.jsx": '<main className="bg-white text-gray-900">'})

    assert styles["colorScheme"]["theme"] == "light"
    assert styles["colorScheme"]["text"]["primary"] == "text-gray-900"
    assert styles["designStyle"]["aesthetic"] == "minimalist"

    design = UXDesign.model_validate(styles)
    assert design.app_identity.name == "Existing App"
    assert design.color_scheme.surface == "bg-white"
