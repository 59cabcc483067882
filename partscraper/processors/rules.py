"""
Classification Rule Tables

Flat data tables consumed by the classification cascade: brands with their
aliases and disambiguation rules, definitive patterns, exclusion patterns,
weighted keywords and semantic signals.
"""

import re
from dataclasses import dataclass
from typing import Dict, Optional, Pattern, Tuple


def _rx(pattern: str) -> Pattern:
    return re.compile(pattern, re.IGNORECASE)


def term_pattern(term: str) -> Pattern:
    """Whole-token, case-insensitive pattern for a brand or alias"""
    return _rx(r'(?<![a-z0-9])' + re.escape(term.lower()) + r'(?![a-z0-9])')


def keyword_pattern(word: str) -> Pattern:
    """
    Pattern for a weighted keyword

    Keywords match after a letter boundary only, so a unit glued to its
    number ("1500mah", "2450kv") and plurals still count. Keywords of three
    letters or fewer also need a right boundary (an optional plural "s"
    allowed) so "esc" does not match "escape" nor "fc" match "fcc".
    """
    pattern = r'(?<![a-z])' + re.escape(word.lower())
    if len(word) <= 3:
        pattern += r's?(?![a-z])'
    return re.compile(pattern)


@dataclass(frozen=True)
class DisambiguationRule:
    """Keyword rule picking a category for a brand that sells several"""
    category: str
    pattern: Pattern
    label: str


@dataclass(frozen=True)
class BrandEntry:
    """A manufacturer and the category its name implies"""
    name: str
    category: Optional[str]
    aliases: Tuple[str, ...] = ()
    rules: Tuple[DisambiguationRule, ...] = ()

    @property
    def is_multi_category(self) -> bool:
        return bool(self.rules)


@dataclass(frozen=True)
class PatternRule:
    category: str
    pattern: Pattern
    confidence: float
    rationale: str


@dataclass(frozen=True)
class ExclusionRule:
    category: str
    pattern: Pattern
    rationale: str


@dataclass(frozen=True)
class KeywordRule:
    category: str
    word: str
    weight: float
    context: str = "general"


@dataclass(frozen=True)
class NameSignal:
    category: str
    pattern: Pattern
    confidence: float
    rationale: str


BRAND_DEFINITIVE_CONFIDENCE = 99
BRAND_ALIAS_CONFIDENCE = 95
BRAND_DISAMBIGUATED_CONFIDENCE = 98
BRAND_DEFAULT_CONFIDENCE = 95

PROP_WORDS = DisambiguationRule('prop', _rx(r'\b(?:props?|propellers?|blades?)\b'), 'propeller keywords')
STACK_WORDS = DisambiguationRule(
    'stack',
    _rx(r'\b(?:esc|4in1|4-in-1|flight\s+controller|fc|aio|stack)\b'),
    'ESC/flight controller keywords'
)
FRAME_WORDS = DisambiguationRule('frame', _rx(r'\b(?:frame|frame\s+kit|wheelbase|chassis)\b'), 'frame keywords')
MOTOR_WORDS = DisambiguationRule('motor', _rx(r'\b(?:motors?|\d+\s*kv)\b'), 'motor keywords')
BATTERY_WORDS = DisambiguationRule('battery', _rx(r'\b(?:battery|batteries|lipo|lihv|\d+\s*mah)\b'), 'battery keywords')
CAMERA_WORDS = DisambiguationRule('camera', _rx(r'\b(?:camera|cam|vtx|\d+\s*tvl)\b'), 'camera keywords')


# Checked in order; a single-category brand is definitive on its name
BRAND_TABLE: Tuple[BrandEntry, ...] = (
    # battery
    BrandEntry('tattu', 'battery'),
    BrandEntry('gnb', 'battery', aliases=('gaoneng',)),
    BrandEntry('cnhl', 'battery'),
    BrandEntry('gens ace', 'battery', aliases=('gensace', 'gens-ace')),
    BrandEntry('turnigy', 'battery'),
    BrandEntry('zippy', 'battery'),
    BrandEntry('ovonic', 'battery'),
    BrandEntry('zeee', 'battery'),
    BrandEntry('goldbat', 'battery'),
    BrandEntry('dinogy', 'battery'),
    # prop
    BrandEntry('gemfan', 'prop'),
    BrandEntry('hqprop', 'prop', aliases=('hq prop', 'hq-prop')),
    BrandEntry('dalprop', 'prop', aliases=('dal prop', 'dal-prop')),
    BrandEntry('ethix', 'prop'),
    BrandEntry('azure power', 'prop', aliases=('azure',)),
    # motor, with T-Motor and EMAX also selling props and ESCs
    BrandEntry('t-motor', 'motor', aliases=('tmotor', 't motor'), rules=(PROP_WORDS, STACK_WORDS)),
    BrandEntry('emax', 'motor', rules=(PROP_WORDS, STACK_WORDS)),
    BrandEntry('brotherhobby', 'motor', aliases=('brother hobby',)),
    BrandEntry('xing', 'motor'),
    # camera
    BrandEntry('runcam', 'camera'),
    BrandEntry('foxeer', 'camera'),
    BrandEntry('caddx', 'camera'),
    BrandEntry('hawkeye', 'camera'),
    BrandEntry('walksnail', 'camera', aliases=('walksnail avatar',)),
    BrandEntry('hdzero', 'camera'),
    BrandEntry('dji air unit', 'camera', aliases=('air unit', 'dji o3', 'dji o4')),
    # frame
    BrandEntry('armattan', 'frame'),
    BrandEntry('source one', 'frame'),
    BrandEntry('realacc', 'frame'),
    BrandEntry('lumenier frame', 'frame'),
    # stack
    BrandEntry('holybro', 'stack'),
    BrandEntry('matek', 'stack', aliases=('matek systems', 'mateksys')),
    BrandEntry('mamba', 'stack'),
    BrandEntry('jhemcu', 'stack'),
    # full-range brands: only their disambiguation rules can place them
    BrandEntry('speedybee', None, aliases=('speedy bee',), rules=(STACK_WORDS, FRAME_WORDS, PROP_WORDS)),
    BrandEntry('betafpv', None, aliases=('beta fpv',), rules=(
        STACK_WORDS, FRAME_WORDS, MOTOR_WORDS, BATTERY_WORDS, CAMERA_WORDS, PROP_WORDS
    )),
)


PATTERN_TABLE: Tuple[PatternRule, ...] = (
    # frame
    PatternRule('frame', _rx(r'\b(?:frame\s+kit|kit\s+frame)\b'), 99, 'Product explicitly labeled as frame kit'),
    PatternRule('frame', _rx(r'wheelbase.*?\b\d+\s*mm\b'), 95, 'Wheelbase specification is frame-specific'),
    PatternRule('frame', _rx(r'\b\d+(?:\.\d+)?\s*(?:"|\'\'|\'|inch)\s*frame\b'), 90, 'Frame with size designation'),
    PatternRule('frame', _rx(r'\bcarbon\s+fib(?:er|re)\s+frame\b'), 88, 'Carbon fiber frame material specification'),
    # battery
    PatternRule('battery', _rx(r'\b\d+s\s+\d+\s*mah\b'), 99, 'Battery cell count with capacity'),
    PatternRule('battery', _rx(r'\b\d+\s*mah\s+\d+s\b'), 99, 'Battery capacity with cell count'),
    PatternRule('battery', _rx(r'\blipo\b.*?\b\d+s\b'), 95, 'LiPo battery with cell specification'),
    PatternRule('battery', _rx(r'\b\d+s\b.*?\blipo\b'), 95, 'Cell count with LiPo designation'),
    # motor
    PatternRule('motor', _rx(r'\b\d+\s*kv\s+motors?\b'), 99, 'Motor with KV rating'),
    PatternRule('motor', _rx(r'\bmotors?\b.*?\b\d+\s*kv\b'), 99, 'Motor product with KV specification'),
    PatternRule('motor', _rx(r'\bbrushless\s+motors?\b(?!\s+(?:esc|controller))'), 95, 'Brushless motor (not ESC)'),
    PatternRule('motor', _rx(r'\b\d{4}\s+stator\b'), 90, 'Motor stator size specification'),
    # prop
    PatternRule('prop', _rx(r'\bpropellers?\b'), 95, 'Explicit propeller designation'),
    PatternRule('prop', _rx(r'\b\d+(?:\.\d+)?x\d+(?:\.\d+)?x\d\b.*?\b(?:props?|blades?)\b'), 90, 'Propeller dimensions with blade count'),
    PatternRule('prop', _rx(r'\b\d+\s*-?\s*blade\s+(?:props?|propellers?)\b'), 88, 'Blade count specification'),
    # stack
    PatternRule('stack', _rx(r'\b(?:4in1|4-in-1|four\s+in\s+one)\s+esc\b'), 99, '4-in-1 ESC designation'),
    PatternRule('stack', _rx(r'\b(?:aio|all-in-one|all\s+in\s+one)\b'), 95, 'All-in-one flight controller'),
    PatternRule('stack', _rx(r'\bflight\s+controller\b.*?\bf\d+'), 90, 'Flight controller with processor'),
    PatternRule('stack', _rx(r'\bf\d{3}\b.*?\bflight\s+controller\b'), 90, 'Processor with flight controller'),
    PatternRule('stack', _rx(r'\b\d+a\s+esc\b'), 85, 'ESC with amperage rating'),
    # camera
    PatternRule('camera', _rx(r'\bfpv\s+camera\b'), 95, 'FPV camera designation'),
    PatternRule('camera', _rx(r'\b(?:dji\s+)?(?:air\s+unit|o3|o4)\b'), 90, 'Digital FPV system'),
    PatternRule('camera', _rx(r'\bcamera\b.*?\b\d+\s*tvl\b'), 85, 'Camera with TVL resolution'),
)


EXCLUSION_TABLE: Tuple[ExclusionRule, ...] = (
    ExclusionRule('prop', _rx(r'(?:propeller\s+)?compatib(?:ility|le).*?(?:up\s+to\s+)?\d+'), 'Compatibility specification, not actual propeller'),
    ExclusionRule('prop', _rx(r'supports?.*?\d+(?:\.\d+)?\s*(?:"|inch)\s*props?'), 'Frame prop support specification'),
    ExclusionRule('prop', _rx(r'\b(?:max|maximum)\s+prop(?:eller)?\s+size'), 'Maximum prop size specification'),
    ExclusionRule('motor', _rx(r'\bmotor\s+mounts?\b'), 'Motor mounting hardware, not motor'),
    ExclusionRule('motor', _rx(r'\bmotor\s+(?:protection|guards?|dampeners?)\b'), 'Motor accessory, not motor'),
    ExclusionRule('frame', _rx(r'\bframe\s*rates?\b'), 'Camera frame rate, not physical frame'),
    ExclusionRule('camera', _rx(r'\b(?:gopro|action\s+cam(?:era)?)\b'), 'Action camera, not FPV camera'),
)


CONTEXT_MULTIPLIERS: Dict[str, float] = {
    'primary': 1.5,
    'specification': 1.3,
    'type': 1.2,
}


KEYWORD_TABLE: Tuple[KeywordRule, ...] = (
    KeywordRule('motor', 'motor', 30, 'primary'),
    KeywordRule('motor', 'kv', 40, 'specification'),
    KeywordRule('motor', 'brushless', 25, 'type'),
    KeywordRule('motor', 'stator', 35, 'specification'),
    KeywordRule('motor', 'thrust', 20),
    KeywordRule('motor', 'rpm', 15),
    KeywordRule('frame', 'frame', 35, 'primary'),
    KeywordRule('frame', 'wheelbase', 45, 'specification'),
    KeywordRule('frame', 'chassis', 30),
    KeywordRule('frame', 'carbon fiber', 25),
    KeywordRule('frame', 'freestyle', 20, 'type'),
    KeywordRule('frame', 'racing', 20, 'type'),
    KeywordRule('stack', 'esc', 35, 'primary'),
    KeywordRule('stack', 'flight controller', 40, 'primary'),
    KeywordRule('stack', 'fc', 30),
    KeywordRule('stack', 'aio', 35, 'type'),
    KeywordRule('stack', 'stack', 25),
    KeywordRule('stack', 'gyro', 20),
    KeywordRule('battery', 'battery', 35, 'primary'),
    KeywordRule('battery', 'lipo', 40, 'type'),
    KeywordRule('battery', 'mah', 45, 'specification'),
    KeywordRule('battery', 'cells', 30),
    KeywordRule('battery', 'discharge', 20, 'specification'),
    KeywordRule('battery', 'xt60', 25),
    KeywordRule('prop', 'propeller', 40, 'primary'),
    KeywordRule('prop', 'prop', 30),
    KeywordRule('prop', 'blade', 35),
    KeywordRule('prop', 'pitch', 25, 'specification'),
    KeywordRule('camera', 'camera', 35, 'primary'),
    KeywordRule('camera', 'lens', 25),
    KeywordRule('camera', 'cmos', 30),
    KeywordRule('camera', 'tvl', 40, 'specification'),
    KeywordRule('camera', 'fov', 20, 'specification'),
)


NAME_SIGNALS: Tuple[NameSignal, ...] = (
    NameSignal('frame', _rx(r'\b(?:frame\s+kit|kit\s+frame)\b'), 95, 'Name contains frame kit'),
    NameSignal('motor', _rx(r'\b(?:power|motor)\s+kit\b'), 90, 'Name contains power/motor kit'),
)

STATEMENT_CONFIDENCE = 85

# "This is a ... <noun>" within the next few words of a description sentence
STATEMENT_PATTERN = _rx(r'\bthis\s+(?:is\s+)?(?:an?\s+|the\s+|our\s+)?((?:[\w"\'-]+\s+){0,4}[\w-]+)')

STATEMENT_NOUNS: Dict[str, str] = {
    'frame': 'frame',
    'motor': 'motor',
    'battery': 'battery',
    'lipo': 'battery',
    'camera': 'camera',
    'propeller': 'prop',
    'propellers': 'prop',
    'prop': 'prop',
    'props': 'prop',
    'esc': 'stack',
    'stack': 'stack',
}
