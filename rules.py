"""
Memoir Extraction Rules
=======================

The Pattern Extractor's rule table: an explicitly ordered list of
(regex, category, template, confidence, exclusion, context words) records.

Rules are data. The built-in table below is compiled when this module is
imported, and alternative tables can be loaded from versioned JSON files with
load_rules(). Any malformed rule (bad regex, unknown category, template
placeholder without a matching capture group, out-of-range confidence) raises
RuleConfigError at load time, before a single message is processed.
"""

import re
import json
import logging
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Tuple, Any, Sequence

from lexicon import Category, CONNECTORS, NAME, PHRASE, PHRASE_BODY, contains_keyword

logger = logging.getLogger(__name__)

RULES_VERSION = "2.2.0"

_PLACEHOLDER = re.compile(r"\{(\d+)\}")
_WHITESPACE = re.compile(r"\s+")
_LIST_SEPARATOR = re.compile(r"\s*(?:[,;]|\bet\b|\bou\b)\s*", re.IGNORECASE)

MAX_LIST_ITEMS = 10


class RuleConfigError(ValueError):
    """Raised when a rule table cannot be compiled."""


class Template:
    """Fact template with numbered placeholders: {0} is the full match, {n} the n-th group."""

    def __init__(self, text: str):
        self.text = text
        self._parts: List[Tuple[str, Optional[int]]] = []
        position = 0
        for match in _PLACEHOLDER.finditer(text):
            if match.start() > position:
                self._parts.append((text[position:match.start()], None))
            self._parts.append(("", int(match.group(1))))
            position = match.end()
        if position < len(text):
            self._parts.append((text[position:], None))
        self.placeholders = sorted({index for _, index in self._parts if index is not None})

    @property
    def arity(self) -> int:
        """Number of capture groups the template needs (highest group index)."""
        return max(self.placeholders, default=0)

    def render(self, groups: Sequence[Optional[str]]) -> str:
        """Fill the template from (full_match, group1, ..., groupN).

        Groups that did not participate in the match render as ''.
        """
        if len(groups) <= self.arity:
            raise RuleConfigError(
                f"Template '{self.text}' needs {self.arity} groups, got {len(groups) - 1}"
            )
        rendered = "".join(
            literal if index is None else (groups[index] or "")
            for literal, index in self._parts
        )
        return _WHITESPACE.sub(" ", rendered).strip()

    def __repr__(self):
        return f"Template({self.text!r})"


def split_list(value: Optional[str]) -> List[str]:
    """Split an enumeration ("le jazz, le rock et la pop") into its items."""
    items = [item.strip(" .:!?'-") for item in _LIST_SEPARATOR.split(value or "")]
    return [item for item in items if item][:MAX_LIST_ITEMS]


@dataclass
class ExtractionRule:
    """One compiled row of the rule table.

    When list_group is set, that capture group holds an enumeration. Each item
    renders its own fact, unless list_join is set, in which case the items are
    joined back into a single fact with that separator.
    """
    name: str
    pattern: "re.Pattern"
    category: Category
    template: Template
    confidence: float
    exclude: Optional["re.Pattern"] = None
    context_words: List[str] = field(default_factory=list)
    list_group: Optional[int] = None
    list_join: Optional[str] = None

    def match(self, text: str) -> Optional["re.Match"]:
        """Return the regex match if the rule fires on text (exclusion applied)."""
        match = self.pattern.search(text)
        if match is None:
            return None
        if self.exclude is not None and self.exclude.search(text):
            return None
        return match

    def render(self, match: "re.Match") -> str:
        return self.template.render((match.group(0),) + match.groups())

    def render_all(self, match: "re.Match") -> List[str]:
        """Rendered facts for a match, one per list item for list rules."""
        groups = [match.group(0)] + list(match.groups())
        if self.list_group is None or not groups[self.list_group]:
            return [self.template.render(groups)]

        items = split_list(groups[self.list_group])
        if self.list_join is not None:
            items = [self.list_join.join(items)]

        rendered = []
        for item in items:
            groups[self.list_group] = item
            content = self.template.render(groups)
            if content not in rendered:
                rendered.append(content)
        return rendered

    def has_context(self, text: str) -> bool:
        return any(contains_keyword(text, word) for word in self.context_words)


def _compile_regex(source: str, rule_name: str, what: str) -> "re.Pattern":
    try:
        return re.compile(source, re.IGNORECASE)
    except re.error as e:
        raise RuleConfigError(f"Rule '{rule_name}': invalid {what} regex: {e}") from e


def compile_rule(spec: Dict[str, Any], index: int = 0) -> ExtractionRule:
    """Compile a single rule dict, raising RuleConfigError on any problem."""
    name = spec.get("name") or f"rule_{index}"

    for key in ("pattern", "category", "template", "confidence"):
        if key not in spec:
            raise RuleConfigError(f"Rule '{name}': missing '{key}'")

    pattern = _compile_regex(spec["pattern"], name, "pattern")
    exclude = _compile_regex(spec["exclude"], name, "exclude") if spec.get("exclude") else None

    category = Category.coerce(spec["category"])
    if category is None:
        raise RuleConfigError(f"Rule '{name}': unknown category '{spec['category']}'")

    try:
        confidence = float(spec["confidence"])
    except (TypeError, ValueError) as e:
        raise RuleConfigError(f"Rule '{name}': confidence must be a number") from e
    if not 0.0 <= confidence <= 1.0:
        raise RuleConfigError(f"Rule '{name}': confidence {confidence} outside [0, 1]")

    template = Template(spec["template"])
    if template.arity > pattern.groups:
        raise RuleConfigError(
            f"Rule '{name}': template uses {{{template.arity}}} but pattern has {pattern.groups} group(s)"
        )

    list_group = spec.get("list_group")
    if list_group is not None:
        if isinstance(list_group, bool) or not isinstance(list_group, int):
            raise RuleConfigError(f"Rule '{name}': list_group must be an integer")
        if list_group not in template.placeholders or list_group == 0:
            raise RuleConfigError(f"Rule '{name}': list_group {list_group} is not a template group")
    list_join = spec.get("list_join")
    if list_join is not None and (list_group is None or not isinstance(list_join, str)):
        raise RuleConfigError(f"Rule '{name}': list_join needs a list_group and must be a string")

    return ExtractionRule(
        name=name,
        pattern=pattern,
        category=category,
        template=template,
        confidence=confidence,
        exclude=exclude,
        context_words=list(spec.get("context_words", [])),
        list_group=list_group,
        list_join=list_join,
    )


def compile_rules(specs: Sequence[Dict[str, Any]]) -> List[ExtractionRule]:
    """Compile an ordered rule table. Order is preserved: it is the priority order."""
    rules = [compile_rule(spec, i) for i, spec in enumerate(specs)]
    names = [r.name for r in rules]
    duplicates = {n for n in names if names.count(n) > 1}
    if duplicates:
        raise RuleConfigError(f"Duplicate rule names: {', '.join(sorted(duplicates))}")
    return rules


def load_rules(path: str) -> Tuple[str, List[ExtractionRule]]:
    """Load a versioned JSON rule file: {"version": "...", "rules": [...]}."""
    logger.info(f"Loading extraction rules from {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise RuleConfigError(f"Cannot read rule file {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("rules"), list):
        raise RuleConfigError(f"Rule file {path} must contain a 'rules' list")
    version = str(data.get("version", "unversioned"))
    rules = compile_rules(data["rules"])
    logger.info(f"Loaded {len(rules)} rules (version {version})")
    return version, rules


def dump_rules(specs: Sequence[Dict[str, Any]], path: str, version: str = RULES_VERSION) -> None:
    """Write a rule table to JSON in the format load_rules() expects."""
    with open(path, "w", encoding="utf-8") as f:
        json.dump({"version": version, "rules": list(specs)}, f, indent=2, ensure_ascii=False)


# ---------------------------------------------------------------------------
# Built-in rule table (priority order)
# ---------------------------------------------------------------------------

_TO = r"(à|au|en|aux|dans|sur|près de)"
_ITEM_START = rf"(?!(?:{'|'.join(CONNECTORS)})\b|j')"
_LIST_SEP = r"(?:, et |, ou |, | et | ou )"

# Enumeration of article-led phrases: "le jazz, le rock et la pop".
_ARTICLE_ITEM = rf"(?:le |la |les |l'){PHRASE_BODY}"
_ARTICLE_LIST = rf"({_ARTICLE_ITEM}(?:{_LIST_SEP}{_ARTICLE_ITEM})*)"

# Tool names keep digits and symbols: "C++", "Node.js", "Visual Studio Code".
_TOOL = rf"{_ITEM_START}[\w+#](?:[\w+#\-]|\.(?=\w))*(?: {_ITEM_START}[\w+#](?:[\w+#\-]|\.(?=\w))*){{0,2}}"

_MONTH = (
    r"(?:janvier|février|fevrier|mars|avril|mai|juin|juillet|août|aout"
    r"|septembre|octobre|novembre|décembre|decembre)"
)
_DAY = r"(?:lundi|mardi|mercredi|jeudi|vendredi|samedi|dimanche)s?"
_DAY_SLOT = rf"{_DAY}(?: (?:matin|midi|après-midi|soirée|soir)s?)?"

TRANSIENT_STATES = (
    r"\b(?:fatiguée?|contente?|heureux|heureuse|triste|malade|prête?|désolée?|occupée?"
    r"|disponible|dispo|libre|en forme|en retard|à l'heure|là|ici|ok|d'accord|sûre?|certaine?"
    r"|allergique|née?|originaire|étudiante?|végétarienn?e?|végétalienn?e?|végane?|vegan"
    r"|allée?|partie?|en train|mariée?|pacsée?|divorcée?|passionnée?|fan)\b"
)

# "je suis en GMT+2", "je suis chez moi": a place or a state, never a trait.
PREPOSITIONAL_STATE = r"(?:(?:en|dans|à|au|aux|chez|sur|sous|avec|de|du|des)\b|d')"

DEFAULT_RULE_SPECS: List[Dict[str, Any]] = [
    # === IDENTITÉ ===
    {
        "name": "first_name",
        "pattern": rf"\b(?:je m'appelle|mon prénom est|on m'appelle) {NAME}",
        "category": "identité",
        "template": "Le prénom de l'utilisateur est {1}",
        "confidence": 0.9,
        "context_words": ["nom", "prénom", "appelle"],
    },
    {
        "name": "age",
        "pattern": r"\b(?:j'ai|je vais avoir|j'aurai bientôt|j'aurai) (\d{1,3}) ans\b",
        "category": "identité",
        "template": "L'utilisateur a {1} ans",
        "confidence": 0.85,
        "context_words": ["âge", "ans", "anniversaire"],
    },
    {
        "name": "birthday",
        "pattern": rf"\b(?:mon anniversaire|ma date de naissance|je suis née? le) "
                   rf"(?:est |c'est |tombe |: )?(?:le |au )?"
                   rf"((?:1er|\d{{1,2}}) {_MONTH}(?: \d{{4}})?|\d{{1,2}}/\d{{1,2}}(?:/\d{{2,4}})?)",
        "category": "identité",
        "template": "Anniversaire de l'utilisateur : {1}",
        "confidence": 0.85,
        "context_words": ["anniversaire", "naissance", "né"],
    },
    {
        "name": "languages",
        "pattern": rf"\b(?:je parle|je maîtrise|ma langue maternelle est) (?:couramment |un peu )?"
                   rf"([A-Za-zÀ-ÿ]+(?:{_LIST_SEP}{_ITEM_START}[A-Za-zÀ-ÿ]+)*)",
        "category": "identité",
        "template": "Langues parlées par l'utilisateur : {1}",
        "confidence": 0.8,
        "list_group": 1,
        "list_join": ", ",
        "exclude": r"\bje parle (?:de|du|des|d'|à|au|avec|trop|beaucoup|souvent|vite)\b",
        "context_words": ["langue", "bilingue", "couramment"],
    },

    # === PERSONNALITÉ ===
    {
        "name": "personality",
        "pattern": rf"\b(?:je suis|je me considère comme|on dit que je suis) "
                   rf"(?!(?:(?:un|une|plutôt|assez|très) )?{PREPOSITIONAL_STATE})"
                   rf"(?:un |une |plutôt |assez |très )?{PHRASE}",
        "category": "personnalité",
        "template": "L'utilisateur est {1}",
        "confidence": 0.75,
        "exclude": TRANSIENT_STATES,
        "context_words": ["personnalité", "caractère", "tempérament"],
    },

    # === LOCALISATION ===
    {
        "name": "residence",
        "pattern": rf"\b(?:j'habite|je vis|je réside|je demeure) {_TO} {PHRASE}",
        "category": "localisation",
        "template": "L'utilisateur habite {1} {2}",
        "confidence": 0.85,
        "context_words": ["habite", "ville", "quartier", "région"],
    },
    {
        "name": "origin",
        "pattern": rf"\b(?:je viens|je suis originaire|je suis née?|mes origines sont) "
                   rf"(?:de |d'|du |des |à |au |en ){PHRASE}",
        "category": "localisation",
        "template": "L'utilisateur vient de {1}",
        "confidence": 0.8,
        "context_words": ["origine", "originaire", "né"],
    },
    {
        "name": "past_residence",
        "pattern": rf"\b(?:j'ai déménagé|j'ai vécu|j'ai grandi) (à|au|en|aux|dans) {PHRASE}",
        "category": "localisation",
        "template": "L'utilisateur a vécu {1} {2}",
        "confidence": 0.7,
        "context_words": ["déménagé", "vécu", "grandi"],
    },
    {
        "name": "timezone",
        "pattern": r"\b(GMT|UTC) ?([+-]\d{1,2}(?::\d{2})?)\b",
        "category": "localisation",
        "template": "Fuseau horaire de l'utilisateur : {1}{2}",
        "confidence": 0.8,
        "context_words": ["fuseau", "horaire", "décalage", "heure"],
    },

    # === PROFESSION ===
    {
        "name": "job",
        "pattern": rf"\b(?:je travaille|je bosse|je taffe) (?:comme|en tant que) (?:un |une )?{PHRASE}",
        "category": "profession",
        "template": "L'utilisateur travaille comme {1}",
        "confidence": 0.9,
        "context_words": ["travail", "métier", "profession", "job"],
    },
    {
        "name": "employer",
        "pattern": rf"\b(?:je travaille|je bosse|je taffe) (?:chez|pour) {PHRASE}",
        "category": "profession",
        "template": "L'utilisateur travaille chez {1}",
        "confidence": 0.85,
        "context_words": ["entreprise", "société", "boîte"],
    },
    {
        "name": "company",
        "pattern": rf"\b(?:mon entreprise|ma boîte|ma société) (?:s'appelle|est|c'est) {PHRASE}",
        "category": "profession",
        "template": "L'utilisateur travaille chez {1}",
        "confidence": 0.8,
        "context_words": ["entreprise", "société", "boîte"],
    },
    {
        "name": "studies",
        "pattern": rf"\b(?:j'étudie|je fais des études (?:de|d'|en)|je suis étudiante? en) ?{PHRASE}",
        "category": "profession",
        "template": "L'utilisateur étudie {1}",
        "confidence": 0.85,
        "context_words": ["étude", "étudiant", "université", "école"],
    },
    {
        "name": "tools",
        "pattern": rf"\b(?:j'utilise|je travaille avec|je code en|mes outils sont"
                   rf"|ma stack(?: technique)?(?: est| c'est| ?:)|mon stack(?: est| c'est| ?:)) "
                   rf"(?:surtout |principalement |beaucoup )?({_TOOL}(?:{_LIST_SEP}{_TOOL})*)",
        "category": "profession",
        "template": "Outils utilisés par l'utilisateur : {1}",
        "confidence": 0.75,
        "exclude": r"\b(?:je travaille avec (?:mon|ma|mes|des|un|une|les?|la|l'|lui|elle|eux|elles|d'autres)\b"
                   r"|j'utilise (?:le |la |les |l'|un |une |des |du |mon |ma |mes )?"
                   r"(?:voiture|vélo|métro|bus|train|transports?)\b)",
        "list_group": 1,
        "list_join": ", ",
        "context_words": ["outil", "stack", "logiciel", "langage", "framework"],
    },

    # === PRÉFÉRENCES ===
    {
        "name": "likes",
        "pattern": rf"\b(?:j'adore|j'aime beaucoup|j'aime bien|j'aime) {_ARTICLE_LIST}",
        "category": "préférences",
        "template": "L'utilisateur aime {1}",
        "confidence": 0.8,
        "exclude": r"\bj'aime (?:bien |beaucoup )?les réponses\b",
        "list_group": 1,
        "context_words": ["adore", "aime", "préfère"],
    },
    {
        "name": "dislikes",
        "pattern": rf"\b(?:je déteste|je n'aime pas du tout|je n'aime pas|j'ai horreur de) {_ARTICLE_LIST}",
        "category": "préférences",
        "template": "L'utilisateur n'aime pas {1}",
        "confidence": 0.8,
        "list_group": 1,
        "context_words": ["déteste", "horreur"],
    },
    {
        "name": "prefers",
        "pattern": rf"\bje préfère {_ARTICLE_LIST}",
        "category": "préférences",
        "template": "L'utilisateur préfère {1}",
        "confidence": 0.75,
        "exclude": r"\bje préfère les réponses\b",
        "list_group": 1,
        "context_words": ["préfère", "plutôt"],
    },
    {
        "name": "favourite_dish",
        "pattern": rf"\b(?:mon plat préféré|ma cuisine préférée|ma cuisine favorite|j'adore manger) "
                   rf"(?:est |c'est |ce sont |sont )?{PHRASE}",
        "category": "préférences",
        "template": "Le plat préféré de l'utilisateur est {1}",
        "confidence": 0.85,
        "context_words": ["plat", "manger", "cuisine", "repas"],
    },
    {
        "name": "favourite_music",
        "pattern": rf"\b(?:ma musique préférée|mon style musical|mon genre musical|j'écoute surtout|j'écoute beaucoup) "
                   rf"(?:est |c'est |sont )?(?:du |de la |des |le |la |les )?{PHRASE}",
        "category": "préférences",
        "template": "La musique préférée de l'utilisateur est {1}",
        "confidence": 0.8,
        "context_words": ["musique", "écoute", "chanson", "artiste"],
    },
    {
        "name": "communication",
        "pattern": rf"\b(?:je préfère|ma préférence de communication est) "
                   rf"(?:être contactée? |qu'on me contacte |qu'on m'écrive |communiquer |échanger )?"
                   rf"(?:par|via) (?:le |la |les |l'|un |une |des )?{PHRASE}",
        "category": "préférences",
        "template": "Moyen de communication préféré de l'utilisateur : {1}",
        "confidence": 0.75,
        "context_words": ["contacter", "communication", "message", "appel"],
    },
    {
        "name": "response_style",
        "pattern": rf"\b(?:réponds-moi|réponds|répondez-moi|répondez|j'aime les réponses"
                   rf"|j'aime bien les réponses|je préfère les réponses|je veux des réponses) {PHRASE}",
        "category": "préférences",
        "template": "Style de réponse préféré par l'utilisateur : {1}",
        "confidence": 0.7,
        "exclude": r"\brépond(?:s|ez)(?:-moi)? (?:à|au|aux|a)\b",
        "context_words": ["réponse", "style", "concis", "détaillé"],
    },

    # === RELATIONS ===
    {
        "name": "partner",
        "pattern": rf"\b(?:mon mari|ma femme|mon conjoint|ma conjointe|mon partenaire|ma partenaire"
                   rf"|mon copain|ma copine) (?:s'appelle|se nomme) {NAME}",
        "category": "relations",
        "template": "Le conjoint de l'utilisateur s'appelle {1}",
        "confidence": 0.9,
        "context_words": ["mari", "femme", "conjoint", "partenaire"],
    },
    {
        "name": "child",
        "pattern": rf"\b(?:mon fils|ma fille|mon enfant|mon bébé) (?:s'appelle|se nomme) {NAME}",
        "category": "relations",
        "template": "L'enfant de l'utilisateur s'appelle {1}",
        "confidence": 0.9,
        "context_words": ["enfant", "fils", "fille", "bébé"],
    },
    {
        "name": "children_count",
        "pattern": r"\bj'ai (un|une|deux|trois|quatre|cinq|six|\d{1,2}) enfants?\b",
        "category": "relations",
        "template": "L'utilisateur a {1} enfant(s)",
        "confidence": 0.8,
        "context_words": ["enfant", "famille"],
    },
    {
        "name": "parents",
        "pattern": rf"\b(?:mes parents|mon père|ma mère) (?:habitent|habite|vivent|vit) {_TO} {PHRASE}",
        "category": "relations",
        "template": "Les parents de l'utilisateur habitent {1} {2}",
        "confidence": 0.85,
        "context_words": ["parent", "père", "mère", "famille"],
    },

    # === HABITUDES ===
    {
        "name": "daily_schedule",
        "pattern": r"\b(?:je me lève|je me couche|je commence le travail|je déjeune|je dîne|je mange) "
                   r"(?:à|vers|aux alentours de) (\d{1,2}(?:h\d{0,2}|:\d{2})?)",
        "category": "habitudes",
        "template": "Habitude de l'utilisateur : {0}",
        "confidence": 0.7,
        "context_words": ["habitude", "routine", "emploi du temps"],
    },
    {
        "name": "weekly_habit",
        "pattern": rf"\b(?:tous les|chaque) ([A-Za-zÀ-ÿ\-]+),? (?:j'ai l'habitude de |j'aime |je ){PHRASE}",
        "category": "habitudes",
        "template": "Habitude de l'utilisateur ({1}) : {2}",
        "confidence": 0.75,
        "context_words": ["tous", "chaque", "habitude", "routine"],
    },
    {
        "name": "availability",
        "pattern": rf"\b(?:je suis (?:dispo|disponible|libre)|je peux|dispo|disponible|libre)\b[^.!?]*?"
                   rf"\b((?:le|les) {_DAY_SLOT}(?:{_LIST_SEP}(?:le |les )?{_DAY_SLOT})*)",
        "category": "habitudes",
        "template": "Disponibilité de l'utilisateur : {1}",
        "confidence": 0.75,
        "list_group": 1,
        "context_words": ["dispo", "disponible", "libre", "créneau", "agenda"],
    },

    # === SANTÉ ===
    {
        "name": "allergy",
        "pattern": rf"\b(?:je suis allergique|j'ai une allergie|je ne supporte pas|je ne peux pas manger) "
                   rf"(?:à la |à l'|aux |au |à |du |de la |de l'|des |de |d'){PHRASE}",
        "category": "santé",
        "template": "Allergie de l'utilisateur : {1}",
        "confidence": 0.9,
        "context_words": ["allergie", "allergique", "supporte", "intolérance"],
    },
    {
        "name": "treatment",
        "pattern": rf"\b(?:je prends|je dois prendre|mon traitement est|mon médicament est) "
                   rf"(?:du |de la |des |le |la |les |l'|un |une )?{PHRASE}",
        "category": "santé",
        "template": "Traitement de l'utilisateur : {1}",
        "confidence": 0.85,
        "exclude": r"\b(?:train|bus|métro|avion|voiture|taxi|douche|bain|café|thé|petit[- ]déjeuner"
                   r"|repas|temps|pause|vacances|rendez-vous|photos?|notes?|décision)\b",
        "context_words": ["médicament", "traitement", "santé", "ordonnance"],
    },
    {
        "name": "diet",
        "pattern": r"\b(?:je suis|je mange) (végétarienn?e?|végétalienn?e?|végane?|vegan|sans gluten"
                   r"|halal|casher|keto|flexitarienn?e?)\b",
        "category": "santé",
        "template": "Régime alimentaire de l'utilisateur : {1}",
        "confidence": 0.85,
        "context_words": ["régime", "alimentation"],
    },

    # === LOISIRS ===
    {
        "name": "passion",
        "pattern": rf"\b(?:ma passion|mon hobby|mon loisir préféré|je suis passionnée? par|je suis fan de) "
                   rf"(?:est |c'est |ce sont |sont )?{PHRASE}",
        "category": "loisirs",
        "template": "Passion de l'utilisateur : {1}",
        "confidence": 0.8,
        "context_words": ["passion", "hobby", "loisir", "passionné"],
    },
    {
        "name": "sport",
        "pattern": rf"\b(?:je joue|j'aime jouer|je fais|je pratique) (?:au |aux |à la |à l'|du |de la |de l'|des ){PHRASE}",
        "category": "loisirs",
        "template": "L'utilisateur pratique {1}",
        "confidence": 0.75,
        "exclude": r"\b(?:études?|courses|achats|ménage|devoirs|erreurs?|efforts?)\b",
        "context_words": ["joue", "sport", "pratique", "activité"],
    },
    {
        "name": "learning",
        "pattern": rf"\b(?:j'apprends|je veux apprendre|j'aimerais apprendre) (?:le |la |les |l'|à )?{PHRASE}",
        "category": "loisirs",
        "template": "L'utilisateur apprend {1}",
        "confidence": 0.75,
        "context_words": ["apprendre", "cours", "leçon"],
    },

    # === VOYAGES ===
    {
        "name": "trip",
        "pattern": rf"\b(?:je suis allée? (?:en|au|aux|à)|j'ai visité|j'ai voyagé (?:en|au|aux|à)) {PHRASE}",
        "category": "voyages",
        "template": "L'utilisateur a visité {1}",
        "confidence": 0.7,
        "context_words": ["voyage", "vacances", "séjour", "visité"],
    },
    {
        "name": "travel_wish",
        "pattern": rf"\b(?:je rêve d'aller|j'aimerais aller|je voudrais aller|j'aimerais visiter|je voudrais visiter) "
                   rf"(?:en |au |aux |à )?{PHRASE}",
        "category": "voyages",
        "template": "L'utilisateur aimerait visiter {1}",
        "confidence": 0.75,
        "context_words": ["voyage", "vacances", "rêve"],
    },

    # === GÉNÉRAL ===
    {
        "name": "constraint",
        "pattern": rf"\b(?:(?:je ne peux pas|je ne dois pas|je n'ai pas le droit de|j'évite de|j'évite) "
                   rf"|je n'ai pas le droit d'|j'évite d'){PHRASE}",
        "category": "général",
        "template": "Contrainte de l'utilisateur : {1}",
        "confidence": 0.7,
        "exclude": r"\bje ne peux pas manger\b",
        "context_words": ["contrainte", "interdit", "évite"],
    },
    {
        "name": "goal",
        "pattern": rf"\b(?:mon objectif est|mon but est|mon projet est|ma priorité est) (?:de |d'){PHRASE}",
        "category": "général",
        "template": "Objectif de l'utilisateur : {1}",
        "confidence": 0.75,
        "context_words": ["objectif", "but", "projet"],
    },
]

# Compiled at import: a broken built-in table must stop the process immediately.
DEFAULT_RULES: List[ExtractionRule] = compile_rules(DEFAULT_RULE_SPECS)
