#!/usr/bin/env python3
"""
Tests for the type graph index: identity lookup, overloads, interfaces.
"""

import pytest

from jobresolve.analysis.module_system import loads_module
from jobresolve.analysis.type_index import TypeGraphIndex, canonical_name
from jobresolve.shared.errors import NotFoundError
from jobresolve.shared.typeref import TypeRef
from tests.test_utils import CORE_MODULE, DEMO_MODULE, MARKER, index_for, module_document


OVERLOADS = module_document(
    "Ovl",
    '''(type "Ovl.Api"
         (method "Send" (params "Core.Int32") (body (ret)))
         (method "Send" (generic "T") (params "!!T") (body (ret)))
         (method "Send" (params "Core.Int32" "Core.Single") (body (ret))))''',
)


class Demo:
    pass


class _Named:
    full_name = "Demo.Job"


class TestIdentity:

    def test_descriptor_from_every_identity_form(self):
        index = index_for(CORE_MODULE, DEMO_MODULE)
        job = index.descriptor_for("Demo.Job")
        assert job is not None
        assert index.descriptor_for(TypeRef("Demo.Job", (TypeRef("Core.Int32"),))) is job
        assert index.descriptor_for(job) is job
        assert index.descriptor_for(_Named()) is job
        assert index.identity_of(job) == "Demo.Job"

    def test_python_class_identity(self):
        assert canonical_name(Demo) == f"{__name__}.Demo"
        assert canonical_name(42) is None

    def test_unknown_identity(self):
        index = index_for(CORE_MODULE)
        assert index.descriptor_for("Demo.Job") is None
        assert index.descriptor_for(None) is None

    def test_lookup_is_module_scoped(self):
        core, demo = loads_module(CORE_MODULE), loads_module(DEMO_MODULE)
        index = TypeGraphIndex([core, demo])
        assert index.lookup(demo, "Demo.Job") is not None
        assert index.lookup(core, "Demo.Job") is None

    def test_duplicate_type_keeps_first(self, caplog):
        first = loads_module(DEMO_MODULE)
        second = loads_module(DEMO_MODULE.replace('(module "Demo"', '(module "Demo2"'))
        index = TypeGraphIndex([first, second])
        assert index.descriptor_for("Demo.Job").module == "Demo"
        assert "keeping the first" in caplog.text

    def test_types_of_keeps_declaration_order(self):
        demo = loads_module(DEMO_MODULE)
        index = TypeGraphIndex([demo])
        assert [t.full_name for t in index.types_of(demo)] == ["Demo.Job", "Demo.Scheduler", "Demo.Game"]
        assert index.module_identities == ("Demo",)
        assert [t.full_name for t in index.all_types()] == ["Demo.Job", "Demo.Scheduler", "Demo.Game"]


class TestFindMethod:

    def test_exact_signature(self):
        index = index_for(OVERLOADS)
        method = index.find_method("Ovl.Api", "Send", parameters=("Core.Int32", "Core.Single"))
        assert method.id.parameters == ("Core.Int32", "Core.Single")

    def test_generic_arity_preferred(self):
        index = index_for(OVERLOADS)
        assert index.find_method("Ovl.Api", "Send", generic_arity=1).generic_params == ("T",)

    def test_declaration_order_breaks_ties(self):
        index = index_for(OVERLOADS)
        assert index.find_method("Ovl.Api", "Send", generic_arity=0).id.parameters == ("Core.Int32",)

    @pytest.mark.parametrize("type_name, name, parameters", [
        ("Ovl.Missing", "Send", None),
        ("Ovl.Api", "Receive", None),
        ("Ovl.Api", "Send", ("Core.Single",)),
    ])
    def test_not_found(self, type_name, name, parameters):
        with pytest.raises(NotFoundError):
            index_for(OVERLOADS).find_method(type_name, name, parameters=parameters)

    def test_method_by_id(self):
        index = index_for(OVERLOADS)
        method = index.find_method("Ovl.Api", "Send", generic_arity=1)
        assert index.method(method.id) is method
        assert index.declaring_type(method).full_name == "Ovl.Api"


class TestInterfaces:

    def test_transitive_interfaces(self):
        index = index_for(CORE_MODULE, DEMO_MODULE)
        job = index.descriptor_for("Demo.Job")
        assert [i.full_name for i in index.interfaces_of(job)] == ["Core.IJob", "Core.IJobBase"]
        assert index.has_capability(job, MARKER)
        assert not index.has_capability(job, "Other.Marker")

    def test_interfaces_through_base_type(self):
        derived = module_document("D", '(type "D.Derived" (base "Demo.Job<Core.Int32>"))')
        index = index_for(CORE_MODULE, DEMO_MODULE, derived)
        assert index.has_capability(index.descriptor_for("D.Derived"), MARKER)

    def test_unloaded_interface_is_skipped(self):
        index = index_for(DEMO_MODULE)
        assert index.interfaces_of(index.descriptor_for("Demo.Job")) == ()
