import pytest

from prospect_search.query.dsl import parse_filter_dsl
from prospect_search.query.entities import EntityType
from prospect_search.query.filter_compiler import FilterCompiler, FilterItem, parse_bracket, parse_money
from prospect_search.query.filter_registry import FilterRegistry, RangeFacet


CONTACT = EntityType.CONTACT
COMPANY = EntityType.COMPANY


class TestBrackets:
    @pytest.mark.parametrize("text, expected", [
        ("$1.5M", 1_500_000),
        ("500K", 500_000),
        ("1,000", 1_000),
        ("2b", 2_000_000_000),
        ("abc", None),
    ])
    def test_parse_money(self, text, expected):
        assert parse_money(text) == expected

    @pytest.mark.parametrize("text, expected", [
        ("1-10", {"gte": 1, "lte": 10}),
        ("$1M-$10M", {"gte": 1_000_000, "lte": 10_000_000}),
        ("1000+", {"gte": 1000}),
        ("<$1M", {"lt": 1_000_000}),
        ("<", None),
        ("250", {"gte": 250, "lte": 250}),
        ("lots", None),
    ])
    def test_parse_bracket(self, text, expected):
        assert parse_bracket(text) == expected


class TestContactCompilation:
    def setup_method(self):
        self.compiler = FilterCompiler()

    def test_empty_dsl_matches_everything(self):
        assert self.compiler.compile({}, CONTACT).bool_query() == {"match_all": {}}

    def test_include_and_exclude(self):
        query = self.compiler.compile({
            "contact": {"seniority": {"include": ["VP"], "exclude": ["Intern"]}},
        }, CONTACT)
        assert query.filter == [{"terms": {"seniority": ["VP"]}}]
        assert query.must_not == [{"terms": {"seniority": ["Intern"]}}]

    def test_text_filters_use_phrases(self):
        query = self.compiler.compile({"contact": {"title": ["Head of Sales", "CRO"]}}, CONTACT)
        assert query.filter == [{
            "bool": {
                "should": [
                    {"match_phrase": {"title": "Head of Sales"}},
                    {"match_phrase": {"title": "CRO"}},
                ],
                "minimum_should_match": 1,
            }
        }]

    def test_operator_and_requires_every_value(self):
        query = self.compiler.compile({
            "contact": {"departments": {"include": ["Sales", "Marketing"], "operator": "and"}},
        }, CONTACT)
        assert query.filter == [
            {"term": {"departments": "Sales"}},
            {"term": {"departments": "Marketing"}},
        ]

    def test_nested_presence(self):
        query = self.compiler.compile({"contact": {"has_email": True, "has_phone": "false"}}, CONTACT)
        assert query.filter == [
            {"nested": {"path": "emails", "query": {"exists": {"field": "emails.email"}}}},
        ]
        assert query.must_not == [
            {"nested": {"path": "phone_numbers", "query": {"exists": {"field": "phone_numbers.phone_number"}}}},
        ]

    def test_unsupported_exclusion_dropped(self):
        query = self.compiler.compile({"contact": {"has_linkedin": {"exclude": ["x"]}}}, CONTACT)
        assert query.bool_query() == {"match_all": {}}

    def test_location_block(self):
        query = self.compiler.compile({
            "contact": {
                "location": {
                    "include": {"countries": ["US", "CA"]},
                    "exclude": {"cities": ["Austin"]},
                    "unknown": True,
                },
            },
        }, CONTACT)
        assert {"terms": {"location.country": ["US", "CA"]}} in query.filter
        assert {"terms": {"location.city": ["Austin"]}} in query.must_not
        assert {"exists": {"field": "location.country"}} in query.must_not

    def test_known_and_unknown_together_do_not_constrain(self):
        query = self.compiler.compile({"contact": {"location": {"known": True, "unknown": True}}}, CONTACT)
        assert query.bool_query() == {"match_all": {}}

    def test_unknown_and_misplaced_filters_skipped(self):
        query = self.compiler.compile({
            "contact": {"shoe_size": ["42"], "industry": ["SaaS"], "seniority": ["VP"]},
        }, CONTACT)
        assert query.filter == [{"terms": {"seniority": ["VP"]}}]


class TestCrossIndexCompilation:
    def setup_method(self):
        self.compiler = FilterCompiler()
        self.dsl = parse_filter_dsl({
            "contact": {"seniority": ["VP"]},
            "company": {"industry": ["SaaS"]},
        })

    def test_resolved_domains_become_a_terms_filter(self):
        query = self.compiler.compile(self.dsl, CONTACT, resolved_domains=["a.com", "b.com", "a.com"])
        assert query.filter == [
            {"terms": {"seniority": ["VP"]}},
            {"terms": {"domain": ["a.com", "b.com"]}},
        ]

    def test_no_matching_companies_forces_zero_results(self):
        query = self.compiler.compile(self.dsl, CONTACT, resolved_domains=[])
        assert {"terms": {"domain": []}} in query.filter

    def test_same_input_same_output(self):
        first = self.compiler.compile(self.dsl, CONTACT, resolved_domains=["a.com"]).to_body()
        second = self.compiler.compile(self.dsl, CONTACT, resolved_domains=["a.com"]).to_body()
        assert first == second

    def test_normalized_input_is_reused(self):
        normalized = self.compiler.normalize(self.dsl)

        assert self.compiler.normalize(normalized) is normalized
        assert [item.entry.id for item in normalized.contact] == ["seniority"]
        assert self.compiler.compile(normalized, CONTACT, resolved_domains=["a.com"]).to_body() == \
            self.compiler.compile(self.dsl, CONTACT, resolved_domains=["a.com"]).to_body()

    def test_company_fields_never_reach_contact_query(self):
        query = self.compiler.compile(self.dsl, CONTACT, resolved_domains=["a.com"])
        assert "industry" not in str(query.to_body())

    def test_company_search_ignores_contact_bucket(self):
        query = self.compiler.compile(self.dsl, COMPANY)
        assert query.filter == [{"terms": {"industry": ["SaaS"]}}]

    def test_needs_domain_resolution(self):
        assert self.compiler.needs_domain_resolution(self.dsl, CONTACT)
        assert not self.compiler.needs_domain_resolution(self.dsl, COMPANY)
        assert not self.compiler.needs_domain_resolution(parse_filter_dsl({"contact": {"seniority": ["VP"]}}), CONTACT)

    def test_contact_location_overrides_company_location(self):
        dsl = parse_filter_dsl({
            "contact": {"countries": ["US"]},
            "company": {"countries": ["DE"]},
        })
        assert not self.compiler.needs_domain_resolution(dsl, CONTACT)
        assert self.compiler.compile(dsl, COMPANY).filter == [{"terms": {"location.country": ["DE"]}}]

    def test_domain_resolution_query(self):
        query = self.compiler.compile_domain_resolution({
            "company": {"employee_count": ["1-10", "1000+"], "domains": ["https://www.Acme.com"]},
        })
        body = query.to_body()
        assert body["_source"] == ["domain", "website"]
        assert {
            "bool": {
                "should": [
                    {"range": {"employee_count": {"gte": 1, "lte": 10}}},
                    {"range": {"employee_count": {"gte": 1000}}},
                ],
                "minimum_should_match": 1,
            }
        } in query.filter
        assert {
            "bool": {
                "should": [{"terms": {"domain": ["acme.com"]}}, {"terms": {"website": ["acme.com"]}}],
                "minimum_should_match": 1,
            }
        } in query.filter


class TestRangeCompilation:
    def test_min_max_range(self):
        query = FilterCompiler().compile({"company": {"employee_count": {"min": 50, "max": 200}}}, COMPANY)
        assert query.filter == [{"range": {"employee_count": {"gte": 50, "lte": 200}}}]

    def test_excluded_bracket(self):
        query = FilterCompiler().compile({"company": {"annual_revenue": {"exclude": ["$1B+"]}}}, COMPANY)
        assert query.must_not == [{"range": {"annual_revenue_usd": {"gte": 1_000_000_000}}}]

    def test_every_range_facet_key_compiles_to_a_filter(self):
        compiler = FilterCompiler()
        for entry in FilterRegistry().active_entries():
            if not isinstance(entry.aggregation, RangeFacet):
                continue
            for key, _, _ in entry.aggregation.ranges:
                query = compiler.compile({"company": {entry.id: {"include": [key]}}}, COMPANY)
                assert len(query.filter) == 1, (entry.id, key)
                assert "range" in str(query.filter[0]), (entry.id, key)

    def test_below_bracket(self):
        query = FilterCompiler().compile({"company": {"annual_revenue": ["<$1M"]}}, COMPANY)
        assert query.filter == [{"range": {"annual_revenue_usd": {"lt": 1_000_000}}}]


class TestDeduplication:
    def setup_method(self):
        self.compiler = FilterCompiler()

    def test_repeated_pairs_collapse(self):
        item = FilterItem("terms", ("seniority",), "include", ("VP",))
        assert self.compiler.deduplicate([item, item]) == [item]

    def test_last_write_wins_per_slot(self):
        first = FilterItem("terms", ("seniority",), "include", ("VP",))
        other = FilterItem("terms", ("departments",), "include", ("Sales",))
        last = FilterItem("terms", ("seniority",), "include", ("Director",))

        assert self.compiler.deduplicate([first, other, last]) == [other, last]

    def test_include_and_exclude_both_survive(self):
        include = FilterItem("terms", ("seniority",), "include", ("VP",))
        exclude = FilterItem("terms", ("seniority",), "exclude", ("VP",))
        assert self.compiler.deduplicate([include, exclude]) == [include, exclude]

    def test_alias_and_id_collapse_to_last(self):
        query = self.compiler.compile({
            "contact": {"department": ["Sales"], "departments": ["Marketing"]},
        }, CONTACT)
        assert query.filter == [{"terms": {"departments": ["Marketing"]}}]
