import unittest

import pytest

from sdi import Container, InvalidArgumentError, Lifetime, ResolvedService, ServiceRegistration, TagMode


class Tracked:
    created = 0

    def __init__(self, deps):
        Tracked.created += 1


class TestTagDiscovery(unittest.TestCase):
    cont: Container

    def setUp(self):
        self.cont = Container()
        Tracked.created = 0

        class PaymentService(Tracked): ...

        class EmailService(Tracked): ...

        class DatabaseRepository(Tracked): ...

        class ApiRepository(Tracked): ...

        self.cont.register(PaymentService).with_tags("payment", "service", "core").as_singleton()
        self.cont.register(EmailService).with_tag("email").with_tag("service").with_tag("notification").as_singleton()
        self.cont.register(DatabaseRepository).with_tags("repository", "database", "persistence").as_singleton()
        self.cont.register(ApiRepository).with_tags("repository", "api", "external").as_singleton()

    def test_and_mode_requires_every_tag(self):
        results = self.cont.get_services_by_tags(["service", "payment"])
        assert [r.name for r in results] == ["paymentService"]
        assert isinstance(results[0], ServiceRegistration)
        assert {"payment", "service"} <= results[0].tags

    def test_or_mode_requires_any_tag(self):
        names = self.cont.get_service_names_by_tags(["payment", "email"], "OR")
        assert sorted(names) == ["emailService", "paymentService"]

    def test_tag_mode_enum_is_accepted(self):
        assert self.cont.get_service_names_by_tags(["api", "database"], TagMode.OR) == [
            "databaseRepository",
            "apiRepository",
        ]
        assert self.cont.get_service_names_by_tags(["api", "database"], TagMode.AND) == []

    def test_service_names_by_tags(self):
        names = self.cont.get_service_names_by_tags(["repository"])
        assert names == ["databaseRepository", "apiRepository"]

    def test_discovery_never_instantiates(self):
        self.cont.get_services_by_tags(["service"], "OR")
        self.cont.get_service_names_by_tags(["repository"])
        self.cont.get_all_tags()
        self.cont.get_services_by_tag()
        assert Tracked.created == 0

    def test_resolve_services_by_tags_instantiates_matches(self):
        resolved = self.cont.resolve_services_by_tags(["service"])
        assert len(resolved) == 2
        assert Tracked.created == 2
        assert all(isinstance(r, ResolvedService) for r in resolved)
        first = resolved[0]
        assert first.name == "paymentService"
        assert first.instance is self.cont.resolve("paymentService")
        assert first.tags == ["core", "payment", "service"]
        assert first.lifetime is Lifetime.SINGLETON

    def test_all_tags_are_sorted_and_unique(self):
        tags = self.cont.get_all_tags()
        assert tags == sorted(set(tags))
        assert {"payment", "service", "repository", "database", "api"} <= set(tags)
        assert tags.count("service") == 1

    def test_services_grouped_by_tag(self):
        grouped = self.cont.get_services_by_tag()
        assert grouped["service"] == ["paymentService", "emailService"]
        assert grouped["repository"] == ["databaseRepository", "apiRepository"]
        assert grouped["core"] == ["paymentService"]
        assert sum("paymentService" in names for names in grouped.values()) == 3

    def test_no_matches_returns_empty_list(self):
        assert self.cont.get_services_by_tags(["nonexistent"]) == []

    def test_matching_is_case_sensitive(self):
        self.cont.register(object, "upper").with_tag("Service").as_value()
        assert self.cont.get_service_names_by_tags(["Service"]) == ["upper"]
        assert "upper" not in self.cont.get_service_names_by_tags(["service"])

    def test_tags_are_unique_per_service(self):
        self.cont.register(object, "dup").with_tags("a", "a", "b").as_value()
        assert self.cont.get_registration("dup").tags == frozenset({"a", "b"})


def test_invalid_tag_queries_raise():
    c = Container()
    with pytest.raises(InvalidArgumentError, match="Tags must be a list"):
        c.get_services_by_tags("not-array")
    with pytest.raises(InvalidArgumentError, match="At least one tag must be provided"):
        c.get_services_by_tags([])
    with pytest.raises(InvalidArgumentError, match="Mode must be 'AND' or 'OR'"):
        c.get_services_by_tags(["test"], "INVALID")
    with pytest.raises(InvalidArgumentError, match="Mode must be 'AND' or 'OR'"):
        c.get_services_by_tags(["test"], "and")
    with pytest.raises(InvalidArgumentError, match="list of strings"):
        c.get_services_by_tags([1])


def test_invalid_tags_on_builder_raise():
    c = Container()
    with pytest.raises(InvalidArgumentError, match="Tag must be a non-empty string"):
        c.register(object, "x").with_tag("")
    with pytest.raises(InvalidArgumentError, match="Tag must be a non-empty string"):
        c.register(object, "x").with_tags("ok", None)


def test_uncommitted_builder_tags_are_invisible():
    c = Container()
    builder = c.register(object, "draft").with_tag("draft")
    assert c.get_service_names_by_tags(["draft"]) == []
    builder.as_value()
    assert c.get_service_names_by_tags(["draft"]) == ["draft"]


def test_scoped_services_resolved_by_tag_use_the_scope():
    c = Container()

    class RequestContext: ...

    c.register(RequestContext).with_tag("request").as_scoped()
    scope = c.create_scope("req-1")

    first = c.resolve_services_by_tags(["request"], scope_name="req-1")[0].instance
    assert first is scope.resolve("requestContext")


def test_overridden_registration_replaces_tags():
    c = Container()
    c.register(object, "svc").with_tag("old").as_value()
    c.register(object, "svc").with_tag("new").override().as_value()
    assert c.get_service_names_by_tags(["old"]) == []
    assert c.get_service_names_by_tags(["new"]) == ["svc"]


def test_services_without_tags_are_never_matched():
    c = Container()
    c.value("plain", 1)
    assert c.get_services_by_tags(["anything"], "OR") == []
    assert c.get_services_by_tag() == {}
    assert c.get_all_tags() == []
