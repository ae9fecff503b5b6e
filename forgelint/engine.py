"""
Run coordinator: one analysis pass over one file.

A pass builds the scope/control index once, walks the tree once in source
order dispatching each node to the rules interested in its kind, sorts the
findings, and, when fixing, reconciles and applies their fixes.

Typical usage:
    from forgelint.engine import Engine

    engine = Engine()
    report = engine.analyze_source(b"fetchUserData(id);", Path("app.js"))
    for finding in report.findings:
        print(finding.rule_id, finding.message.text)
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Sequence

from forgelint.config import Config, ResolvedRule, get_default_config, resolve_rules
from forgelint.context import FileContext, context_from_source, create_context
from forgelint.findings.models import Finding, Report
from forgelint.fixer import apply_edits, plan_fixes
from forgelint.index import AnalysisIndex
from forgelint.registry import RuleRegistry
from forgelint.rules.base import RuleContext

logger = logging.getLogger(__name__)

DEFAULT_MAX_FIX_PASSES = 10


class Engine:
    """
    Runs a validated set of rules over files.

    Construction resolves and validates the configuration, so a bad option
    raises ConfigurationError before any file is touched.
    """

    def __init__(self, config: Optional[Config] = None) -> None:
        self.config = config if config is not None else get_default_config()
        self.resolved: list[ResolvedRule] = resolve_rules(self.config)
        self.registry = RuleRegistry.from_rules(r.rule for r in self.resolved)
        logger.debug("Engine ready with rules: %s", ", ".join(r.rule.id for r in self.resolved))

    def run(self, file: FileContext, *, fix: bool = False) -> Report:
        """
        Analyze one parsed file.

        With fix=True, non-conflicting fixes are applied to the original source
        and the rewritten text is returned as report.output.
        """
        index = AnalysisIndex.build(file.tree)
        contexts = {
            r.rule.id: RuleContext(
                file=file,
                index=index,
                options=r.options,
                severity=r.severity,
                state=r.rule.create_state(),
            )
            for r in self.resolved
        }

        findings: list[Finding] = []
        for node in file.tree.iter_nodes():
            if not self.registry.rules_for(node.kind):
                continue
            findings.extend(
                self.registry.dispatch(node, index.control(node), index.scope_of(node), contexts)
            )
        findings.sort(key=Finding.sort_key)

        report = Report(path=file.path, findings=findings)
        if fix:
            plan = plan_fixes(findings)
            fixed = apply_edits(file.source, plan.edits)
            report = Report(
                path=file.path,
                findings=plan.findings,
                output=fixed.decode("utf-8", errors="surrogateescape"),
                fixes_applied=plan.applied,
            )
            if plan.conflicts:
                logger.warning("%s: %d fix(es) skipped due to conflicts", file.path, plan.conflicts)

        logger.info(
            "Analyzed %s: %d finding(s)%s",
            file.path,
            len(report.findings),
            f", {report.fixes_applied} fix(es) applied" if fix else "",
        )
        return report

    def analyze_source(self, source: bytes, path: Path = Path("<memory>.js"), *, fix: bool = False) -> Report:
        return self.run(context_from_source(source, path=path), fix=fix)

    def fix_source(
        self,
        source: bytes,
        path: Path = Path("<memory>.js"),
        max_passes: int = DEFAULT_MAX_FIX_PASSES,
    ) -> Report:
        """
        Fix repeatedly: apply, re-parse, re-run, until nothing applies or
        max_passes is reached. Fixes dropped for conflicts in one pass get
        another chance in the next. The returned findings describe the final
        output.
        """
        current = source
        total = 0
        passes = 0
        report: Optional[Report] = None
        while passes < max_passes:
            passes += 1
            report = self.analyze_source(current, path, fix=True)
            if report.fixes_applied == 0:
                break
            total += report.fixes_applied
            assert report.output is not None
            current = report.output.encode("utf-8", errors="surrogateescape")
            report = None
        if report is None:
            report = self.analyze_source(current, path)
        logger.debug("Fixed %s in %d pass(es), %d fix(es) applied", path, passes, total)
        return Report(
            path=path,
            findings=report.findings,
            output=current.decode("utf-8", errors="surrogateescape"),
            fixes_applied=total,
            passes=passes,
        )

    def analyze_path(self, path: Path, *, fix: bool = False) -> Optional[Report]:
        """Read, parse and analyze one file; None if it could not be read."""
        file = create_context(path)
        if file is None:
            return None
        if fix:
            return self.fix_source(file.source, path)
        return self.run(file)

    def analyze_paths(self, paths: Sequence[Path], *, fix: bool = False, jobs: int = 1) -> list[Report]:
        """
        Analyze many files. Files are independent, so with jobs > 1 they run in
        a thread pool; reports come back sorted by path either way.
        """
        if jobs > 1 and len(paths) > 1:
            with ThreadPoolExecutor(max_workers=jobs) as pool:
                results = list(pool.map(lambda p: self.analyze_path(p, fix=fix), paths))
        else:
            results = [self.analyze_path(p, fix=fix) for p in paths]
        reports = [r for r in results if r is not None]
        reports.sort(key=lambda r: str(r.path))
        return reports
