#!/usr/bin/env python3
"""
Tests for job call extraction and call-graph construction.
"""

import pytest
import sexpdata

from jobresolve.analysis.call_scanner import (
    CallGraph, CallSiteScanner, dedupe_calls, is_generic_job_call, is_job_implementation,
)
from jobresolve.analysis.module_system import loads_module
from jobresolve.analysis.type_index import TypeGraphIndex
from jobresolve.frontend.instructions import decode_instruction
from jobresolve.frontend.typeref_parser import GenericContext
from jobresolve.shared.cancellation import CancellationToken
from jobresolve.shared.descriptors import MethodId
from jobresolve.shared.errors import MalformedBodyError, ResolutionCancelled
from jobresolve.shared.typeref import GenericParam, TypeRef, spell
from tests.test_utils import CORE_MODULE, DEMO_MODULE, MARKER, module_document


RUN = MethodId("Demo.Scheduler", "Run")
START = MethodId("Demo.Game", "Start")
SCHEDULE = MethodId("Core.JobExtensions", "Schedule", ("!!J",))


def _scan(*documents, **kwargs):
    modules = [loads_module(text) for text in documents]
    index = TypeGraphIndex(modules)
    scanner = CallSiteScanner(index, MARKER, **kwargs)
    return scanner, scanner.scan_modules(modules)


class TestDecodeInstruction:

    CONTEXT = GenericContext(method_id=str(RUN), method_params=("U",))

    def test_newobj(self):
        instruction = decode_instruction(sexpdata.loads('(newobj "Demo.Job<!!U>")'), self.CONTEXT)
        assert instruction.is_construction
        assert instruction.method_name == ".ctor"
        assert spell(instruction.declaring_type) == "Demo.Job<!!U>"

    def test_call_with_type_arguments_and_signature(self):
        form = sexpdata.loads('(call "Demo.Api" "Send" ("Core.Int32" "!!U") ("!!0" "Core.Int32"))')
        instruction = decode_instruction(form, self.CONTEXT)
        assert [spell(a) for a in instruction.type_arguments] == ["Core.Int32", "!!U"]
        assert instruction.parameters == ("!!0", "Core.Int32")

    def test_other_opcodes(self):
        assert decode_instruction(sexpdata.loads("(ldloc 0)"), self.CONTEXT) is None

    @pytest.mark.parametrize("text", [
        "42",
        '(newobj)',
        '(newobj "!!U")',
        '(call "Demo.Api")',
        '(call "Demo.Api" Send)',
        '(callvirt "Demo.Api" "Send" ("Demo.Job<!!W>"))',
    ])
    def test_malformed(self, text):
        with pytest.raises(MalformedBodyError):
            decode_instruction(sexpdata.loads(text), self.CONTEXT)


class TestCapabilityPredicate:

    def test_job_implementation(self):
        index = TypeGraphIndex([loads_module(CORE_MODULE), loads_module(DEMO_MODULE)])
        assert is_job_implementation(index.descriptor_for("Demo.Job"), index, MARKER)
        assert not is_job_implementation(index.descriptor_for("Core.IJob"), index, MARKER)
        assert not is_job_implementation(index.descriptor_for("Demo.Scheduler"), index, MARKER)

    def test_generic_job_call(self):
        index = TypeGraphIndex([loads_module(CORE_MODULE), loads_module(DEMO_MODULE)])
        u = GenericParam(str(RUN), "U", True)
        assert is_generic_job_call(TypeRef("Demo.Job", (u,)), index, MARKER)
        assert not is_generic_job_call(TypeRef("Demo.Job", (TypeRef("Core.Int32"),)), index, MARKER)
        assert not is_generic_job_call(u, index, MARKER)
        assert not is_generic_job_call(TypeRef("Core.List", (u,)), index, MARKER)
        assert not is_generic_job_call(None, index, MARKER)


class TestScanning:

    def test_job_calls_deduplicated_per_entry_method(self):
        _, result = _scan(CORE_MODULE, DEMO_MODULE)
        assert [str(c) for c in result.calls] == ["Demo.Job<!!U> in Demo.Scheduler::Run()"]
        assert result.calls[0].invoked == "Demo.Job<!!U>::.ctor"

    def test_call_sites(self):
        _, result = _scan(CORE_MODULE, DEMO_MODULE)
        edges = [(s.caller, s.callee, tuple((p.name, spell(a)) for p, a in s.bindings)) for s in result.call_sites]
        assert edges == [
            (RUN, SCHEDULE, (("J", "Demo.Job<!!U>"),)),
            (START, RUN, (("U", "Core.Int32"),)),
            (START, RUN, (("U", "Core.Single"),)),
            (START, RUN, (("U", "Core.Int32"),)),
        ]

    def test_unrelated_interface_is_filtered(self):
        other = module_document(
            "Other",
            '(type "Other.Task" (generic "T") (interfaces "Core.IOther"))',
            '''(type "Other.Runner"
                 (method "Go" (generic "U")
                   (body (newobj "Other.Task<!!U>") (ret))))''',
        )
        _, result = _scan(CORE_MODULE, other)
        assert result.calls == []

    def test_closed_job_is_not_a_generic_call(self):
        closed = module_document(
            "Closed",
            '(type "Closed.Job" (generic "T") (interfaces "Core.IJob"))',
            '(type "Closed.Main" (method "Go" (body (newobj "Closed.Job<Core.Int32>") (ret))))',
        )
        _, result = _scan(CORE_MODULE, closed)
        assert result.calls == []

    def test_nested_job_in_type_argument(self):
        nested = module_document(
            "Nested",
            '(type "Nested.Job" (generic "T") (interfaces "Core.IParallelJob"))',
            '''(type "Nested.Runner"
                 (method "Go" (generic "U")
                   (body (call "Core.JobExtensions" "Schedule" ("Core.List<Nested.Job<!!U>>")) (ret))))''',
        )
        _, result = _scan(CORE_MODULE, nested)
        assert [spell(c.target) for c in result.calls] == ["Nested.Job<!!U>"]

    def test_type_parameter_call_binds_declaring_type(self):
        holder = module_document(
            "Holder",
            '(type "Holder.Job" (generic "T") (interfaces "Core.IJob"))',
            '''(type "Holder.Box" (generic "T")
                 (method "Go" (body (newobj "Holder.Job<!T>") (ret))))''',
            '(type "Holder.Main" (method "Main" (body (call "Holder.Box<Core.Int64>" "Go") (ret))))',
        )
        _, result = _scan(CORE_MODULE, holder)
        assert [spell(c.target) for c in result.calls] == ["Holder.Job<!T>"]
        site = result.call_sites[0]
        assert site.binding_map() == {GenericParam("Holder.Box", "T", False): TypeRef("Core.Int64")}

    def test_malformed_body_is_skipped(self):
        broken = module_document(
            "Broken",
            '(type "Broken.Job" (generic "T") (interfaces "Core.IJob"))',
            '''(type "Broken.Runner"
                 (method "Bad" (generic "U") (body (newobj "Broken.Job<!!Nope>")))
                 (method "Good" (generic "U") (body (newobj "Broken.Job<!!U>") (ret))))''',
        )
        scanner, result = _scan(CORE_MODULE, broken)
        assert [str(c.entry_method) for c in result.calls] == ["Broken.Runner::Good()"]
        skipped = scanner.reporter.with_code("S0001")
        assert len(skipped) == 1
        assert skipped[0].location.member == "Broken.Runner::Bad()"

    def test_parallel_scan_matches_sequential(self):
        modules = [loads_module(CORE_MODULE), loads_module(DEMO_MODULE)]
        index = TypeGraphIndex(modules)
        sequential = CallSiteScanner(index, MARKER).scan_modules(modules)
        parallel = CallSiteScanner(index, MARKER).scan_modules(modules, workers=4)
        assert parallel.calls == sequential.calls
        assert parallel.call_sites == sequential.call_sites

    def test_cancellation(self):
        token = CancellationToken()
        token.cancel()
        with pytest.raises(ResolutionCancelled):
            _scan(CORE_MODULE, DEMO_MODULE, cancellation=token)

    def test_custom_marker(self):
        modules = [loads_module(CORE_MODULE), loads_module(DEMO_MODULE)]
        index = TypeGraphIndex(modules)
        assert CallSiteScanner(index, "Other.Marker").scan_modules(modules).calls == []


class TestCallGraph:

    def test_identical_edges_kept_once(self):
        _, result = _scan(CORE_MODULE, DEMO_MODULE)
        graph = CallGraph(result.call_sites)
        assert len(graph.callers_of(RUN)) == 2
        assert len(graph) == 3
        assert graph.callers_of(START) == ()

    def test_lookups(self):
        _, result = _scan(CORE_MODULE, DEMO_MODULE)
        graph = CallGraph(result.call_sites)
        lookup = graph.as_lookup(generic_only=True)
        assert set(lookup) == {RUN, SCHEDULE}
        assert [caller for _, caller in lookup[RUN]] == [START, START]
        assert graph.generic_callers_of(RUN) == graph.callers_of(RUN)

    def test_dedupe_calls_keeps_first(self):
        _, result = _scan(CORE_MODULE, DEMO_MODULE)
        assert dedupe_calls(result.calls + result.calls) == result.calls
