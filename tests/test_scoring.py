from prospect_search.query.entities import EntityType
from prospect_search.query.scoring import (
    COMPANY_SCORES,
    CONTACT_SCORES,
    FieldScoreRegistry,
    ScoringClauseBuilder,
    normalize_domain,
)
from prospect_search.query.term_parser import SearchStrategy


def _clause_types(clauses):
    return [next(iter(clause)) for clause in clauses]


class TestFieldScoreRegistry:
    def test_lookup_by_entity(self):
        registry = FieldScoreRegistry()
        assert registry.get(EntityType.CONTACT) is CONTACT_SCORES
        assert registry.get("company") is COMPANY_SCORES

    def test_boosts_are_positive(self):
        for scores in (CONTACT_SCORES, COMPANY_SCORES):
            for bucket in (scores.exact, scores.phrase, scores.prefix, scores.ngram, scores.fuzzy):
                assert all(f.boost > 0 for f in bucket)

    def test_highlight_fields_are_unique(self):
        names = CONTACT_SCORES.highlight_fields()
        assert len(names) == len(set(names))
        assert "full_name" in names


class TestDomainSearch:
    def test_normalize_domain(self):
        assert normalize_domain("HTTPS://www.Foo.io") == "foo.io"

    def test_contact_domain_query(self):
        text_query = ScoringClauseBuilder().build("foo.io", EntityType.CONTACT)

        assert text_query.strategy == SearchStrategy.DOMAIN
        assert text_query.must == []
        assert text_query.min_score is None
        assert len(text_query.should) == 1

        wrapper = text_query.should[0]["bool"]
        assert wrapper["minimum_should_match"] == 1
        assert wrapper["should"] == [
            {"term": {"website": {"value": "foo.io", "boost": 10}}},
            {"term": {"linkedin_url": {"value": "foo.io", "boost": 8}}},
            {"wildcard": {"website": {"value": "*foo.io*", "boost": 5}}},
        ]
        assert "multi_match" not in str(text_query.should)

    def test_company_uses_company_linkedin_field(self):
        text_query = ScoringClauseBuilder().build("http://www.acme.com", EntityType.COMPANY)
        clauses = text_query.should[0]["bool"]["should"]
        assert clauses[1] == {"term": {"company_linkedin_url": {"value": "acme.com", "boost": 8}}}


class TestGeneralSearch:
    def test_exact_phrase_prefix_ngram_and_single_fuzzy(self):
        text_query = ScoringClauseBuilder().build("jo", EntityType.CONTACT)

        assert text_query.strategy == SearchStrategy.GENERAL
        assert text_query.min_score == 0.1
        clauses = text_query.should[0]["bool"]["should"]
        types = _clause_types(clauses)

        assert types.count("term") == len(CONTACT_SCORES.exact)
        assert types.count("match_phrase") == len(CONTACT_SCORES.phrase)
        assert types.count("match") == len(CONTACT_SCORES.prefix) + len(CONTACT_SCORES.ngram)
        assert types.count("multi_match") == 1

        matches = [c["match"] for c in clauses if "match" in c]
        prefix_fields = [f"{f.field}.prefix" for f in CONTACT_SCORES.prefix]
        assert [next(iter(m)) for m in matches[:len(prefix_fields)]] == prefix_fields
        ngram = matches[len(prefix_fields)]
        assert ngram == {"full_name.joined": {"query": "jo", "boost": 3, "operator": "and"}}
        # fuzzy stays last
        assert "multi_match" in clauses[-1]

    def test_boost_multipliers(self):
        clauses = ScoringClauseBuilder().build("jane", EntityType.CONTACT).should[0]["bool"]["should"]

        assert clauses[0] == {"term": {"full_name.keyword": {"value": "jane", "boost": 30}}}
        phrase = next(c for c in clauses if "match_phrase" in c)
        assert phrase == {"match_phrase": {"full_name": {"query": "jane", "boost": 12, "slop": 1}}}

    def test_fuzzy_clause_shape(self):
        clauses = ScoringClauseBuilder().build("acme", EntityType.COMPANY).should[0]["bool"]["should"]
        fuzzy = clauses[-1]["multi_match"]

        assert fuzzy["fuzziness"] == "AUTO"
        assert fuzzy["prefix_length"] == 2
        assert fuzzy["tie_breaker"] == 0.3
        assert fuzzy["fields"][0] == "company^3"

    def test_highlights_requested(self):
        text_query = ScoringClauseBuilder().build("acme", EntityType.COMPANY)
        assert text_query.highlight["pre_tags"] == ["<mark>"]
        assert "company" in text_query.highlight["fields"]


class TestStructuredSearch:
    def test_and_of_phrases_lowers_to_two_phrase_groups(self):
        text_query = ScoringClauseBuilder().build('"A" AND "B"', EntityType.CONTACT)

        assert text_query.strategy == SearchStrategy.STRUCTURED
        assert text_query.should == []
        must = text_query.must[0]["bool"]["must"]
        assert len(must) == 2
        for group, value in zip(must, ["A", "B"]):
            clauses = group["bool"]["should"]
            assert group["bool"]["minimum_should_match"] == 1
            assert _clause_types(clauses) == ["match_phrase"] * len(CONTACT_SCORES.phrase)
            assert clauses[0] == {"match_phrase": {"full_name": {"query": value, "boost": 12}}}

    def test_or_group_and_term_group(self):
        text_query = ScoringClauseBuilder().build("(A OR B) AND C", EntityType.CONTACT)

        must = text_query.must[0]["bool"]["must"]
        assert len(must) == 2
        assert len(must[0]["bool"]["should"]) == 2
        assert must[0]["bool"]["minimum_should_match"] == 1

        term_types = _clause_types(must[1]["bool"]["should"])
        assert "term" in term_types
        assert term_types.count("multi_match") == 1
        assert len(term_types) == (
            len(CONTACT_SCORES.exact) + len(CONTACT_SCORES.prefix) + len(CONTACT_SCORES.ngram) + 1
        )

    def test_term_uses_prefix_and_ngram_fields(self):
        text_query = ScoringClauseBuilder().build("(acme)", EntityType.COMPANY)
        clauses = text_query.must[0]["bool"]["should"]
        assert {"match": {"company.prefix": {"query": "acme", "boost": 4}}} in clauses
        assert {"match": {"company.joined": {"query": "acme", "boost": 3, "operator": "and"}}} in clauses

    def test_malformed_query_falls_back_to_general(self):
        text_query = ScoringClauseBuilder().build('"unterminated AND', EntityType.CONTACT)

        assert text_query.strategy == SearchStrategy.GENERAL
        assert text_query.must == []
        assert text_query.min_score == 0.1
