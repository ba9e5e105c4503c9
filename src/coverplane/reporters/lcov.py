"""LCOV tracefile reporter.

Emits one record per in-scope file:
- SF:<source file path>
- FN:<line>,<name> / FNDA:<hit count>,<name> / FNF / FNH
- BRDA:<line>,<block>,<branch>,<taken> / BRF / BRH
- DA:<line>,<hit count> / LF / LH
- end_of_record
"""

from __future__ import annotations

from coverplane.coverage.models import CoverageRecord, CoverageStore
from coverplane.reporters.base import ReportContext, ReporterOptions, ReportOutput, visible_records


class LcovOptions(ReporterOptions):
    file: str = "lcov.info"


def _record_lines(record: CoverageRecord) -> list[str]:
    out = ["TN:", f"SF:{record.key}"]

    functions = sorted(record.imap.functions.items(), key=lambda item: item[1].line)
    for _, fn in functions:
        out.append(f"FN:{fn.line},{fn.name}")
    for fid, fn in functions:
        out.append(f"FNDA:{record.function_hits.get(fid, 0)},{fn.name}")
    out.append(f"FNF:{len(functions)}")
    out.append(f"FNH:{sum(1 for fid, _ in functions if record.function_hits.get(fid, 0) > 0)}")

    found = hit = 0
    branches = sorted(record.imap.branches.items(), key=lambda item: item[1].line)
    for block, (bid, info) in enumerate(branches):
        arms = record.branch_hits.get(bid, [0] * info.arms)
        for arm, taken in enumerate(arms):
            # "-" means the enclosing block never ran
            shown = str(taken) if taken or any(arms) else "-"
            out.append(f"BRDA:{info.line},{block},{arm},{shown}")
            found += 1
            hit += taken > 0
    out.append(f"BRF:{found}")
    out.append(f"BRH:{hit}")

    for line in sorted(record.line_hits):
        out.append(f"DA:{line},{record.line_hits[line]}")
    out.append(f"LF:{len(record.line_hits)}")
    out.append(f"LH:{sum(1 for h in record.line_hits.values() if h > 0)}")
    out.append("end_of_record")
    return out


class LcovReporter:
    """Options: file."""

    name = "lcov"
    options_model = LcovOptions

    def render(self, store: CoverageStore, context: ReportContext) -> ReportOutput:
        lines: list[str] = []
        for record in visible_records(store, context):
            lines.extend(_record_lines(record))
        text = "\n".join(lines) + "\n" if lines else ""
        return ReportOutput(files={context.option("file", self.options_model().file): text})
