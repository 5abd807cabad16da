from processing.artifact_validator import (
    Severity,
    ValidationMode,
    count_delimiters,
    package_name,
    quick_validate,
    validate_artifact,
)

APP_WITH_AXIOS = """import React from "react";
import axios from "axios";

export default function App() {
  return <div className="p-4">hi</div>;
}
"""

APP_WITH_ROOT = """import React from "react";
import ReactDOM from "react-dom/client";

function App() {
  return <div />;
}
export default App;

ReactDOM.createRoot(document.getElementById("root")).render(<App />);
"""


def test_banned_package_is_single_critical_issue_and_removed():
    report = validate_artifact(APP_WITH_AXIOS, "App.jsx")

    assert [issue.kind for issue in report.errors] == ["banned-package"]
    assert report.errors[0].severity is Severity.CRITICAL
    assert not any(w.kind == "external-package" for w in report.warnings)
    assert report.auto_fixed
    assert "axios" not in report.text
    assert report.valid
    assert report.remaining == []


def test_root_initialization_is_stripped_in_full_mode():
    report = validate_artifact(APP_WITH_ROOT, "App.jsx", ValidationMode.FULL)

    kinds = {issue.kind for issue in report.errors}
    assert kinds == {"react-dom-import", "root-initialization"}
    assert any(w.kind == "direct-dom-access" for w in report.warnings)
    assert report.valid
    assert "createRoot" not in report.text
    assert "react-dom" not in report.text
    assert "export default App;" in report.text


def test_fast_mode_skips_initialization_rules():
    report = validate_artifact(APP_WITH_ROOT, "App.jsx", ValidationMode.FAST)
    assert report.errors == []
    assert not report.auto_fixed


def test_unbalanced_braces_remain_invalid():
    text = "export default function App() {\n  return <div />;\n"
    report = validate_artifact(text, "App.jsx")

    assert not report.valid
    assert not report.auto_fixed
    assert report.remaining_critical[0].kind == "unbalanced-delimiters"
    assert "braces" in report.remaining_critical[0].message


def test_markdown_fence_is_stripped_in_fast_mode():
    text = "```jsx\nexport const a = 1;\n```\n"
    report = validate_artifact(text, "a.js", ValidationMode.FAST)

    assert report.errors[0].kind == "markdown-fence"
    assert report.valid
    assert report.text == "export const a = 1;\n"


def test_formatting_rewrites_are_warnings():
    text = "import Card from './Card';\n\nexport const X = () => <Card className='p-2' />;\n"
    report = validate_artifact(text, "components/X.jsx", ValidationMode.FORMAT_ONLY)

    assert report.valid
    assert {w.kind for w in report.warnings} == {
        "single-quoted-import",
        "single-quoted-classname",
    }
    assert 'from "./Card"' in report.text
    assert 'className="p-2"' in report.text
    assert len(report.fixes) == 2


def test_external_package_warning():
    text = 'import { motion } from "framer-motion";\nexport const A = motion.div;\n'
    report = validate_artifact(text, "A.jsx", ValidationMode.FAST)
    assert report.valid
    assert [w.kind for w in report.warnings] == ["external-package"]


def test_clean_artifact_reports_nothing():
    text = 'import { useState } from "react";\n\nexport default function C() {\n  const [n] = useState(0);\n  return <p>{n}</p>;\n}\n'
    report = validate_artifact(text, "C.jsx")
    assert report.valid
    assert report.errors == [] and report.warnings == []
    assert report.text == text


def test_delimiters_inside_strings_and_comments_are_ignored():
    counts = count_delimiters("a('{', `\n}`) // )\n/* [ */")
    assert counts == {"{": (0, 0), "(": (1, 1), "[": (0, 0)}


def test_quick_validate():
    assert quick_validate('const s = "{(";\nexport default s;\n')
    assert not quick_validate("const a = (1;")


def test_package_name_handles_scopes_and_subpaths():
    assert package_name("@scope/pkg/sub") == "@scope/pkg"
    assert package_name("lodash/map") == "lodash"


def test_apostrophe_in_jsx_text_does_not_hide_closing_brace():
    text = """import React from "react";

export default function List({ items }) {
  return (
    <div>
      {items.length === 0 && <p>Nothing's here yet</p>}
    </div>
  );
}
"""
    report = validate_artifact(text, "App.jsx", ValidationMode.FULL)

    assert report.valid
    assert not any(issue.kind == "unbalanced-delimiters" for issue in report.errors)
    assert count_delimiters(text)["{"] == (3, 3)


def test_quoted_strings_still_mask_delimiters():
    counts = count_delimiters("const s = '{';\nconst t = x('it\\'s');\n")
    assert counts == {"{": (0, 0), "(": (1, 1), "[": (0, 0)}


def test_root_initialization_without_semicolons_is_stripped():
    text = """import React from "react";
import { createRoot } from "react-dom/client";

function App() {
  return <div />;
}
export default App;

const root = createRoot(document.getElementById("root"))
root.render(<App />)
"""
    report = validate_artifact(text, "App.jsx", ValidationMode.FULL)

    assert "root-initialization" in {issue.kind for issue in report.errors}
    assert report.valid
    assert report.remaining == []
    assert "createRoot" not in report.text
    assert ".render(" not in report.text
    assert "export default App;" in report.text
