from processing.consistency_checker import (
    check_consistency,
    find_cycles,
    import_graph,
    resolve_import,
)

APP = """import TodoList from "./components/TodoList";
import { useTodos } from "./hooks/useTodos";

export default function App() {
  const { todos } = useTodos();
  return <TodoList todos={todos} />;
}
"""

TODO_LIST = """import TodoItem from "./TodoItem";

export default function TodoList({ todos }) {
  return todos.map((t) => <TodoItem key={t.id} todo={t} />);
}
"""

TODO_ITEM = """export default function TodoItem({ todo }) {
  return <li>{todo.text}</li>;
}
"""

USE_TODOS = """import { useState } from "react";

export function useTodos() {
  const [todos] = useState([]);
  return { todos };
}
"""


def _project(**overrides):
    artifacts = {
        "App.jsx": APP,
        "components/TodoList.jsx": TODO_LIST,
        "components/TodoItem.jsx": TODO_ITEM,
        "hooks/useTodos.js": USE_TODOS,
    }
    artifacts.update(overrides)
    return artifacts


def test_consistent_project_is_clean():
    report = check_consistency(_project(), "App.jsx")
    assert report.valid
    assert report.errors == [] and report.warnings == []


def test_resolve_import_tries_extensions_and_index():
    names = {"components/TodoList.jsx", "lib/index.js"}
    assert resolve_import("App.jsx", "./components/TodoList", names) == "components/TodoList.jsx"
    assert resolve_import("components/TodoList.jsx", "../lib", names) == "lib/index.js"
    assert resolve_import("App.jsx", "./missing", names) is None


def test_unused_component_and_hook_are_warnings():
    app = APP.replace("const { todos } = useTodos();", "const todos = [];").replace(
        "return <TodoList todos={todos} />;", "return null;"
    )
    report = check_consistency(_project(**{"App.jsx": app}), "App.jsx")

    messages = [w.message for w in report.warnings]
    assert 'Hook "useTodos" imported but never called' in messages
    assert 'Component "TodoList" imported but never used' in messages
    assert report.valid


def test_missing_export_is_an_error_except_for_entry():
    item = "function TodoItem() {\n  return <li />;\n}\n"
    app_without_export = APP.replace("export default function", "function")
    report = check_consistency(
        _project(**{"components/TodoItem.jsx": item, "App.jsx": app_without_export}),
        "App.jsx",
    )

    assert not report.valid
    assert [e.artifact for e in report.errors] == ["components/TodoItem.jsx"]
    assert "no exports" in report.errors[0].message


def test_stylesheets_need_no_export():
    report = check_consistency(_project(**{"index.css": "body { margin: 0; }"}), "App.jsx")
    assert report.valid


def test_cycle_is_reported_once():
    a = 'import B from "./B";\nexport default function A() { return <B />; }\n'
    b = 'import A from "./A";\nexport default function B() { return <A />; }\n'
    report = check_consistency({"A.jsx": a, "B.jsx": b}, "App.jsx")

    cycles = [w for w in report.warnings if "Circular dependency" in w.message]
    assert len(cycles) == 1
    assert cycles[0].message == "Circular dependency detected: A.jsx -> B.jsx -> A.jsx"


def test_find_cycles_deduplicates_rotations():
    graph = {"a": ["b"], "b": ["c"], "c": ["a"], "d": ["a"]}
    assert find_cycles(graph) == [["a", "b", "c"]]


def test_import_graph_only_follows_relative_imports():
    graph = import_graph(_project())
    assert graph["App.jsx"] == ["components/TodoList.jsx", "hooks/useTodos.js"]
    assert graph["hooks/useTodos.js"] == []


def test_component_with_hook_and_local_state_is_flagged():
    app = APP.replace(
        "const { todos } = useTodos();",
        "const { todos } = useTodos();\n  const [filter] = useState('all');",
    )
    app = 'import { useState } from "react";\n' + app
    report = check_consistency(_project(**{"App.jsx": app}), "App.jsx")
    assert any("duplicate logic" in w.message for w in report.warnings)
