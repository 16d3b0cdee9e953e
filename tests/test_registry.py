"""Tests for the cascade relationship registry."""

import pytest

from sample_models import (
    Attachment,
    Book,
    Company,
    Contact,
    DiamondBase,
    Folder,
    LineItem,
    Membership,
    Project,
    Quote,
    TreeBase,
)
from softdelete_toolkit.soft_delete import (
    CascadeEdge,
    CascadeSoftDeleteMixin,
    RegistryConfigurationError,
    RelationshipRegistry,
)


class TestRegistryLookup:
    def test_edges_keep_declared_order(self):
        registry = RelationshipRegistry({Company: ["contacts", "quotes"]})

        edges = registry.dependents_of(Company)

        assert [edge.attribute for edge in edges] == ["contacts", "quotes"]
        assert [edge.dependent for edge in edges] == [Contact, Quote]
        assert edges[0].name == "Company.contacts"
        assert edges[0].uselist is True

    def test_unregistered_type_has_no_dependents(self, registry):
        assert registry.dependents_of(LineItem) == ()
        assert registry.dependents_of(Membership) == ()
        assert registry.is_registered(LineItem) is False
        assert registry.is_registered(Company) is True

    def test_lookup_is_cached(self, registry):
        assert registry.dependents_of(Company) is registry.dependents_of(Company)

    def test_edges_are_frozen(self, registry):
        edge = registry.dependents_of(Quote)[0]

        assert edge == CascadeEdge(Quote, "line_items", LineItem)
        with pytest.raises(AttributeError):
            edge.attribute = "other"

    def test_from_models_reads_declarations(self, registry):
        assert set(registry.entity_types) == {Company, Quote}
        assert sorted(edge.name for edge in registry.edges()) == [
            "Company.contacts",
            "Company.quotes",
            "Quote.line_items",
        ]

    def test_empty_registry(self):
        registry = RelationshipRegistry({})

        assert registry.entity_types == ()
        assert list(registry.edges()) == []
        assert registry.dependents_of(Company) == ()


class TestRegistryValidation:
    def test_attribute_must_be_a_relationship(self):
        with pytest.raises(RegistryConfigurationError, match="not a relationship"):
            RelationshipRegistry({Company: ["name"]})

    def test_unknown_attribute(self):
        with pytest.raises(RegistryConfigurationError, match="Company.invoices"):
            RelationshipRegistry({Company: ["invoices"]})

    def test_dependent_must_use_cascade_mixin(self):
        with pytest.raises(RegistryConfigurationError, match="Attachment"):
            RelationshipRegistry({Company: ["attachments"]})

    def test_principal_must_use_cascade_mixin(self):
        with pytest.raises(RegistryConfigurationError, match="Attachment"):
            RelationshipRegistry({Attachment: ["company"]})

    def test_plain_soft_delete_model_cannot_cascade(self):
        with pytest.raises(RegistryConfigurationError, match="Book"):
            RelationshipRegistry({Book: ["title"]})

    def test_principal_must_be_mapped(self):
        class Unmapped(CascadeSoftDeleteMixin):
            pass

        with pytest.raises(RegistryConfigurationError, match="not a mapped"):
            RelationshipRegistry({Unmapped: ["children"]})

    def test_string_instead_of_list(self):
        with pytest.raises(RegistryConfigurationError, match="list of attribute"):
            RelationshipRegistry({Company: "quotes"})


class TestRegistryCycles:
    def test_self_reference_is_rejected(self):
        with pytest.raises(RegistryConfigurationError, match="Folder -> Folder"):
            RelationshipRegistry.from_models(TreeBase)

    def test_two_type_cycle_is_rejected(self):
        with pytest.raises(RegistryConfigurationError, match="cycle"):
            RelationshipRegistry({Company: ["quotes"], Quote: ["company"]})

    def test_cycles_can_be_allowed(self):
        registry = RelationshipRegistry(
            {Company: ["quotes"], Quote: ["company"]}, allow_cycles=True
        )

        edge = registry.dependents_of(Quote)[0]
        assert edge.dependent is Company
        assert edge.uselist is False

    def test_diamond_is_not_a_cycle(self):
        registry = RelationshipRegistry.from_models(DiamondBase)

        assert len(registry.dependents_of(Project)) == 2


class TestDescribe:
    def test_nested_description(self, registry):
        description = registry.describe(Company)

        assert description == {
            "type": "Company",
            "dependents": [
                {
                    "type": "Quote",
                    "via": "quotes",
                    "dependents": [
                        {"type": "LineItem", "via": "line_items", "dependents": []}
                    ],
                },
                {"type": "Contact", "via": "contacts", "dependents": []},
            ],
        }

    def test_recursive_edges_are_marked(self):
        registry = RelationshipRegistry.from_models(TreeBase, allow_cycles=True)

        description = registry.describe(Folder)

        assert description["dependents"] == [
            {"type": "Folder", "via": "children", "recursive": True, "dependents": []}
        ]

    def test_max_depth_cuts_the_tree(self, registry):
        description = registry.describe(Company, max_depth=1)

        assert description == {"type": "Company", "dependents": []}

