# Prefer `node:` specifiers for Node.js built-in modules in import/export/require/import().

from typing import Optional

from forgelint.findings.models import Finding, Fix
from forgelint.index import ControlContext, Scope
from forgelint.rules.ast_utils import call_arguments, string_value, unwrap_parentheses
from forgelint.rules.base import Rule, RuleContext, RuleOptions, replace_node
from forgelint.tree import NodeKind, SyntaxNode

NODE_BUILT_INS = frozenset(
    {
        "assert",
        "async_hooks",
        "buffer",
        "child_process",
        "cluster",
        "console",
        "constants",
        "crypto",
        "dgram",
        "diagnostics_channel",
        "dns",
        "domain",
        "events",
        "fs",
        "http",
        "http2",
        "https",
        "inspector",
        "module",
        "net",
        "os",
        "path",
        "perf_hooks",
        "process",
        "punycode",
        "querystring",
        "readline",
        "repl",
        "stream",
        "string_decoder",
        "sys",
        "timers",
        "tls",
        "trace_events",
        "tty",
        "url",
        "util",
        "v8",
        "vm",
        "wasi",
        "worker_threads",
        "zlib",
    }
)


class PreferNodeProtocolOptions(RuleOptions):
    additional_modules: tuple[str, ...] = ()


def is_builtin_module(name: str, modules: frozenset[str]) -> bool:
    """fs, FS and fs/promises count; node:fs and lodash do not."""
    if name.startswith("node:"):
        return False
    if name in modules or name.lower() in modules:
        return True
    return name.split("/", 1)[0] in modules


class PreferNodeProtocolRule(Rule):
    id = "prefer-node-protocol"
    name = "Prefer node: protocol"
    description = "Prefer the node: protocol when importing Node.js built-in modules"
    category = "style"
    reference = "https://nodejs.org/api/modules.html#built-in-modules"
    interests = frozenset({NodeKind.IMPORT_STATEMENT, NodeKind.EXPORT_STATEMENT, NodeKind.CALL_EXPRESSION})
    options = PreferNodeProtocolOptions
    fixable = True

    def check(
        self,
        node: SyntaxNode,
        control: ControlContext,
        scope: Scope,
        context: RuleContext,
    ) -> list[Finding]:
        specifier = self._specifier(node, context)
        if specifier is None:
            return []
        name = string_value(specifier, context)
        opts: PreferNodeProtocolOptions = context.options  # type: ignore[assignment]
        modules = NODE_BUILT_INS | frozenset(opts.additional_modules)
        if not name or not is_builtin_module(name, modules):
            return []

        quote = context.text(specifier)[0]
        message = self.make_message(
            "preferNodeProtocol",
            f"Use 'node:{name}' instead of '{name}' for the Node.js built-in module",
            hint=f'Change "{name}" to "node:{name}"',
        )
        fix = Fix(edits=(replace_node(specifier, f"{quote}node:{name}{quote}"),))
        return [self.report(context, specifier, message, fix=fix)]

    def _specifier(self, node: SyntaxNode, context: RuleContext) -> Optional[SyntaxNode]:
        if node.kind in (NodeKind.IMPORT_STATEMENT, NodeKind.EXPORT_STATEMENT):
            source = node.child("source")
            return source if source is not None and source.kind is NodeKind.STRING else None

        callee = unwrap_parentheses(node.child("function"))
        args = call_arguments(node)
        if callee is None or len(args) != 1 or args[0].kind is not NodeKind.STRING:
            return None
        if callee.kind is NodeKind.IMPORT:
            return args[0]
        if (
            callee.kind is NodeKind.IDENTIFIER
            and context.text(callee) == "require"
            and context.index.resolve(callee) is None
        ):
            return args[0]
        return None
