"""
Specification Mining

Category-aware regular-expression extraction of product attributes (KV
rating, stator size, capacity, cell count, wheelbase, prop size, current
rating, processor and so on) from product name and description text.
Extraction is best-effort: a missing or out-of-range value leaves the key
unset.
"""

import re
import logging
from typing import Callable, Dict, List, Optional, Pattern, Sequence

from partscraper.core.base import ComponentCategory


# Known manufacturers, most specific spelling first
BRAND_NAMES = [
    ('T-Motor', r't-?motor|t\s+motor'),
    ('EMAX', r'emax'),
    ('BrotherHobby', r'brother\s*hobby'),
    ('iFlight', r'i-?flight'),
    ('Diatone', r'diatone'),
    ('GEPRC', r'geprc'),
    ('Armattan', r'armattan'),
    ('Lumenier', r'lumenier'),
    ('TBS', r'tbs|team\s+blacksheep'),
    ('Gemfan', r'gemfan'),
    ('HQProp', r'hq\s*-?prop'),
    ('DALProp', r'dal\s*-?prop'),
    ('Ethix', r'ethix'),
    ('Azure', r'azure\s*power|azure'),
    ('Tattu', r'tattu'),
    ('CNHL', r'cnhl'),
    ('Gaoneng', r'gaoneng|gnb'),
    ('Gens Ace', r'gens\s*-?ace'),
    ('Turnigy', r'turnigy'),
    ('RunCam', r'runcam'),
    ('Foxeer', r'foxeer'),
    ('Caddx', r'caddx'),
    ('Walksnail', r'walksnail'),
    ('HDZero', r'hdzero'),
    ('DJI', r'dji'),
    ('Holybro', r'holybro'),
    ('Matek', r'matek'),
    ('SpeedyBee', r'speedy\s*bee'),
    ('BetaFPV', r'betafpv'),
    ('JHEMCU', r'jhemcu'),
    ('Flywoo', r'flywoo'),
    ('HGLRC', r'hglrc'),
]

_BRAND_PATTERNS = [
    (display, re.compile(r'(?<![a-z0-9])(?:' + pattern + r')(?![a-z0-9])', re.IGNORECASE))
    for display, pattern in BRAND_NAMES
]

NUMBER = r'(\d+(?:\.\d+)?)'


def _compile(patterns: Sequence[str]) -> List[Pattern]:
    return [re.compile(pattern, re.IGNORECASE) for pattern in patterns]


def _format_number(value: float) -> str:
    return str(int(value)) if float(value).is_integer() else f"{value:g}"


def _in_range(low: float, high: float) -> Callable[[float], bool]:
    return lambda value: low <= value <= high


class SpecificationMiner:
    """
    Extracts category specific attributes from free text.
    """

    # Motor
    KV_OPTIONS = re.compile(r'(\d+\s*kv(?:\s*/\s*\d+\s*kv)+)', re.IGNORECASE)
    KV = _compile([r'(\d+)\s*kv\b', r'\bkv\s*[:\-]?\s*(\d+)', r'(\d+)\s*rpm/v'])
    STATOR = _compile([
        r'motor\s*size\s*[:\-]?\s*(\d{4})\b',
        r'stator\s*[:\-]?\s*(\d{4})\b',
        r'\b(\d{4})\s*stator',
        r'\b(\d{4})\b(?=[\s-]*(?:\d+\s*kv|brushless|motor))'
    ])
    MOTOR_CONFIG = re.compile(r'\b(\d+n\d+p)\b', re.IGNORECASE)
    CELL_RANGE = re.compile(r'\b(\d{1,2})(?:\s*-\s*(\d{1,2}))?\s*s\b(?!\s*(?:shipping|warranty|delivery))', re.IGNORECASE)
    SHAFT = _compile([NUMBER + r'\s*mm\s*shaft', r'shaft\s*(?:diameter)?\s*[:\-]?\s*' + NUMBER + r'\s*mm'])
    THRUST = _compile([
        r'thrust\s*[:\-]?\s*(?:of\s*)?(?:up\s*to\s*)?' + NUMBER + r'\s*(kg|g|grams?)\b',
        NUMBER + r'\s*(kg|g|grams?)\s*(?:of\s*)?(?:max\s*)?thrust'
    ])
    WEIGHT = _compile([
        r'weight\s*[:\-]?\s*(?:approx\.?\s*)?' + NUMBER + r'\s*(?:g|grams?)\b',
        NUMBER + r'\s*(?:g|grams?)\b(?!\s*(?:of\s*)?(?:max\s*)?thrust)'
    ])

    # Battery
    CAPACITY_MAH = _compile([
        r'capacity\s*[:\-]?\s*' + NUMBER + r'\s*mah\b',
        NUMBER + r'\s*mah\b'
    ])
    CAPACITY_AH = re.compile(NUMBER + r'\s*ah\b', re.IGNORECASE)
    C_RATING = _compile([
        r'(\d+)\s*c\s*(?:rating|discharge|constant)',
        r'discharge\s*(?:rate)?\s*[:\-]?\s*(\d+)\s*c\b',
        r'\b(\d+)\s*c\b(?!\s*(?:temperature|°))'
    ])
    CELLS = _compile([
        r'\b(\d{1,2})\s*s\s*(?:lipo|lihv|battery|pack)',
        r'\b(\d{1,2})\s*s\s*\d+p\b',
        r'\b(\d{1,2})\s*cells?\b',
        r'\b(\d{1,2})s\b(?!\s*(?:shipping|warranty|delivery))'
    ])
    CONNECTOR = re.compile(r'\b(xt60h?|xt30|xt90|xt150|jst|ph\s*2\.0|bt\s*2\.0|a30|deans|ec3|ec5|t-plug)\b', re.IGNORECASE)
    VOLTAGE = _compile([
        r'voltage\s*[:\-]?\s*' + NUMBER + r'\s*v\b',
        NUMBER + r'\s*v\b(?!\s*(?:warranty|shipping))'
    ])
    CHEMISTRY = re.compile(r'\b(lipo|li-po|lihv|li-hv|li-ion|liion|life|nimh)\b', re.IGNORECASE)
    CHEMISTRY_NAMES = {
        'lipo': 'LiPo', 'li-po': 'LiPo', 'lihv': 'LiHV', 'li-hv': 'LiHV',
        'li-ion': 'Li-ion', 'liion': 'Li-ion', 'life': 'LiFe', 'nimh': 'NiMH'
    }

    # Prop
    PROP_SIZE_X = re.compile(r'\b(\d+(?:\.\d+)?)\s*x\s*(\d+(?:\.\d+)?)(?:\s*x\s*(\d))?\b', re.IGNORECASE)
    PROP_SIZE_DASH = re.compile(r'\b(\d+(?:\.\d+)?)-(\d+(?:\.\d+)?)(?:-(\d))?\b(?!\s*(?:blade|s\b|mm))', re.IGNORECASE)
    PROP_SIZE_COMPACT = re.compile(r'\b(\d)(\d)(\d)(\d)\b')
    BLADES = _compile([
        r'\b(\d)\s*-?\s*blades?\b',
        r'\b(\d)\s*bl\b',
        r'\b(tri|quad|bi)[\s-]?blades?\b',
        r'blade\s*count\D{0,5}(\d)'
    ])
    BLADE_WORDS = {'bi': '2', 'tri': '3', 'quad': '4'}
    PROP_MATERIAL = re.compile(r'\b(carbon fib(?:er|re)|polycarbonate|glass fib(?:er|re)|nylon|abs|pc)\b', re.IGNORECASE)
    PITCH = _compile([r'pitch\s*[:\-]?\s*' + NUMBER, NUMBER + r'\s*(?:inch|")\s*pitch'])
    ROTATION = re.compile(r'\b(cw|ccw|clockwise|counter-?clockwise)\b', re.IGNORECASE)
    HUB = re.compile(NUMBER + r'\s*mm\s*(?:hub|mount(?:ing)?\s*hole|shaft)', re.IGNORECASE)

    # Frame
    WHEELBASE = _compile([r'(\d+)\s*mm\s*wheelbase', r'wheelbase\D{0,20}?(\d+)\s*mm'])
    FRAME_SIZE = _compile([
        r'(\d+(?:\.\d+)?)\s*(?:"|\'\'|inch|in\b)\s*(?:frame|class|freestyle|racing|cinewhoop|long\s*range)?',
        r'(\d+(?:\.\d+)?)\s*"?\s*class'
    ])
    FRAME_MATERIAL = re.compile(r'\b(3k carbon|t700 carbon|ud carbon|carbon fib(?:er|re)|aluminum|aluminium|titanium|alloy)\b', re.IGNORECASE)
    ARM_THICKNESS = _compile([NUMBER + r'\s*mm\s*arms?\b', r'arms?\s*(?:thickness)?\s*[:\-]?\s*' + NUMBER + r'\s*mm'])
    PLATE_THICKNESS = re.compile(NUMBER + r'\s*mm\s*(?:thick|plate)', re.IGNORECASE)

    # Stack
    CURRENT = _compile([
        r'(\d+)\s*a\s*(?:esc|4in1|4-in-1|blheli|aio|continuous)',
        r'\b(\d+)a\b'
    ])
    PROCESSOR = re.compile(r'\b(f4\d{0,2}|f7\d{0,2}|h7\d{0,2}|g4\d{0,2}|at32f\d+|stm32\w*)\b', re.IGNORECASE)
    FIRMWARE = re.compile(r'\b(betaflight|inav|ardupilot|emuflight|kiss|blheli_?32|blheli_?s|bluejay|am32)\b', re.IGNORECASE)
    MOUNTING = _compile([
        r'(\d+(?:\.\d+)?)\s*x\s*(\d+(?:\.\d+)?)\s*mm',
        r'(\d+(?:\.\d+)?)\s*mm\s*mount'
    ])
    INPUT_VOLTAGE = _compile([
        r'\b(\d{1,2}\s*-\s*\d{1,2})\s*s\b',
        r'\b(\d{1,2})\s*s\s*input'
    ])

    # Camera
    SENSOR = re.compile(r'(1/\d+(?:\.\d+)?)\s*(?:"|\'\'|inch)', re.IGNORECASE)
    SENSOR_TYPE = re.compile(r'\b(starlight|cmos|ccd)\b', re.IGNORECASE)
    TVL = re.compile(r'(\d+)\s*tvl', re.IGNORECASE)
    PIXELS = re.compile(r'\b(\d{3,4})\s*x\s*(\d{3,4})\b')
    PROGRESSIVE = re.compile(r'\b(\d{3,4})p\b', re.IGNORECASE)
    K_RES = re.compile(r'\b(\d)k\b', re.IGNORECASE)
    FOV = _compile([NUMBER + r'\s*°?\s*(?:fov|field of view)', r'fov\s*[:\-]?\s*' + NUMBER])
    LENS = _compile([NUMBER + r'\s*mm\s*lens', r'lens\s*[:\-]?\s*' + NUMBER + r'\s*mm'])
    FPS = re.compile(r'(\d+)\s*fps', re.IGNORECASE)
    VIDEO_FORMAT = re.compile(r'\b(ntsc|pal)\b', re.IGNORECASE)

    def __init__(self):
        self.logger = logging.getLogger(__name__)
        self._miners = {
            ComponentCategory.MOTOR.value: self._mine_motor,
            ComponentCategory.BATTERY.value: self._mine_battery,
            ComponentCategory.PROP.value: self._mine_prop,
            ComponentCategory.FRAME.value: self._mine_frame,
            ComponentCategory.STACK.value: self._mine_stack,
            ComponentCategory.CAMERA.value: self._mine_camera,
        }

    def mine(self, text: str, category: str) -> Dict[str, str]:
        """
        Extract specifications for a known category

        Args:
            text: Product name and description
            category: One of the six component categories

        Returns:
            Mapping of specification key to display value
        """
        miner = self._miners.get(category)
        if not miner or not text:
            return {}

        specs = miner(text.lower())
        self.logger.debug(f"Mined {len(specs)} {category} specifications")
        return specs

    def detect_brand(self, text: str) -> Optional[str]:
        """Find a known manufacturer name in text"""
        if not text:
            return None
        for display, pattern in _BRAND_PATTERNS:
            if pattern.search(text):
                return display
        return None

    def _first_number(self, text: str, patterns: Sequence[Pattern],
                      valid: Optional[Callable[[float], bool]] = None) -> Optional[float]:
        """First numeric capture across patterns that passes validation"""
        for pattern in patterns:
            for match in pattern.finditer(text):
                try:
                    value = float(match.group(1))
                except (TypeError, ValueError):
                    continue
                if valid is None or valid(value):
                    return value
        return None

    def _mine_motor(self, text: str) -> Dict[str, str]:
        specs: Dict[str, str] = {}

        options = self.KV_OPTIONS.search(text)
        if options:
            values = re.findall(r'(\d+)\s*kv', options.group(1))
            specs['kv_options'] = '/'.join(f"{value}KV" for value in values)
            specs['kv'] = f"{values[0]}KV"
        else:
            kv = self._first_number(text, self.KV, _in_range(100, 20000))
            if kv is not None:
                specs['kv'] = f"{_format_number(kv)}KV"

        for pattern in self.STATOR:
            match = pattern.search(text)
            if match:
                specs['stator_size'] = match.group(1)
                break

        config = self.MOTOR_CONFIG.search(text)
        if config:
            specs['configuration'] = config.group(1).upper()

        voltage = self._cell_range(text)
        if voltage:
            specs['voltage'] = voltage

        shaft = self._first_number(text, self.SHAFT, _in_range(1, 10))
        if shaft is not None:
            specs['shaft_diameter'] = f"{_format_number(shaft)}mm"

        for pattern in self.THRUST:
            match = pattern.search(text)
            if match:
                grams = float(match.group(1)) * (1000 if match.group(2) == 'kg' else 1)
                if 10 <= grams <= 50000:
                    specs['thrust'] = f"{_format_number(grams)}g"
                    break

        weight = self._first_number(text, self.WEIGHT, _in_range(1, 1000))
        if weight is not None:
            specs['weight'] = f"{_format_number(weight)}g"

        return specs

    def _cell_range(self, text: str) -> Optional[str]:
        for match in self.CELL_RANGE.finditer(text):
            low = int(match.group(1))
            high = int(match.group(2)) if match.group(2) else None
            if not 1 <= low <= 12:
                continue
            if high is None:
                return f"{low}S"
            if low < high <= 12:
                return f"{low}-{high}S"
        return None

    def _mine_battery(self, text: str) -> Dict[str, str]:
        specs: Dict[str, str] = {}

        capacity = self._first_number(text, self.CAPACITY_MAH, _in_range(100, 50000))
        if capacity is not None:
            specs['capacity'] = f"{round(capacity)}mAh"
        else:
            amp_hours = self._first_number(text, [self.CAPACITY_AH], _in_range(0.1, 10))
            if amp_hours is not None:
                specs['capacity'] = f"{round(amp_hours * 1000)}mAh"

        c_rating = self._first_number(text, self.C_RATING, _in_range(1, 200))
        if c_rating is not None:
            specs['c_rating'] = f"{_format_number(c_rating)}C"

        cells = self._first_number(text, self.CELLS, _in_range(1, 12))
        if cells is not None:
            specs['cell_count'] = f"{_format_number(cells)}S"

        connector = self.CONNECTOR.search(text)
        if connector:
            specs['connector'] = re.sub(r'\s+', '', connector.group(1)).upper()

        voltage = self._first_number(text, self.VOLTAGE, _in_range(3, 50))
        if voltage is not None:
            specs['voltage'] = f"{_format_number(voltage)}V"

        chemistry = self.CHEMISTRY.search(text)
        if chemistry:
            specs['chemistry'] = self.CHEMISTRY_NAMES[chemistry.group(1).lower()]

        return specs

    def _mine_prop(self, text: str) -> Dict[str, str]:
        specs: Dict[str, str] = {}
        blades_from_size = None

        size = self.PROP_SIZE_X.search(text) or self.PROP_SIZE_DASH.search(text)
        if size and 1 <= float(size.group(1)) <= 30:
            diameter, pitch, blades_from_size = size.group(1), size.group(2), size.group(3)
            specs['size'] = f"{diameter}x{pitch}" + (f"x{blades_from_size}" if blades_from_size else "")
            specs['pitch'] = pitch
        else:
            compact = self.PROP_SIZE_COMPACT.search(text)
            if compact:
                d1, d2, p1, p2 = compact.groups()
                diameter = d1 if d2 == '0' else f"{d1}.{d2}"
                pitch = p1 if p2 == '0' else f"{p1}.{p2}"
                specs['size'] = f"{diameter}x{pitch}"
                specs['pitch'] = pitch

        for pattern in self.BLADES:
            match = pattern.search(text)
            if match:
                value = self.BLADE_WORDS.get(match.group(1).lower(), match.group(1))
                if 2 <= int(value) <= 6:
                    specs['blades'] = value
                    break
        if 'blades' not in specs and blades_from_size and 2 <= int(blades_from_size) <= 6:
            specs['blades'] = blades_from_size

        material = self.PROP_MATERIAL.search(text)
        if material:
            specs['material'] = material.group(1).upper() if len(material.group(1)) <= 3 else material.group(1).title()

        pitch = self._first_number(text, self.PITCH, _in_range(0.5, 20))
        if pitch is not None:
            specs['pitch'] = _format_number(pitch)

        rotations = {match.lower() for match in self.ROTATION.findall(text)}
        if rotations:
            ccw = bool(rotations & {'ccw', 'counterclockwise', 'counter-clockwise'})
            cw = bool(rotations & {'cw', 'clockwise'})
            specs['rotation'] = 'CW/CCW' if cw and ccw else ('CCW' if ccw else 'CW')

        hub = self._first_number(text, [self.HUB], _in_range(1, 20))
        if hub is not None:
            specs['hub_diameter'] = f"{_format_number(hub)}mm"

        return specs

    def _mine_frame(self, text: str) -> Dict[str, str]:
        specs: Dict[str, str] = {}

        wheelbase = self._first_number(text, self.WHEELBASE, _in_range(50, 1500))
        if wheelbase is not None:
            specs['wheelbase'] = f"{_format_number(wheelbase)}mm"

        frame_size = self._first_number(text, self.FRAME_SIZE, _in_range(1, 15))
        if frame_size is not None:
            specs['frame_size'] = f'{_format_number(frame_size)}"'

        material = self.FRAME_MATERIAL.search(text)
        if material:
            specs['material'] = material.group(1).title()

        arm = self._first_number(text, self.ARM_THICKNESS, _in_range(1, 15))
        if arm is not None:
            specs['arm_thickness'] = f"{_format_number(arm)}mm"

        plate = self._first_number(text, [self.PLATE_THICKNESS], _in_range(0.5, 10))
        if plate is not None:
            specs['plate_thickness'] = f"{_format_number(plate)}mm"

        return specs

    def _mine_stack(self, text: str) -> Dict[str, str]:
        specs: Dict[str, str] = {}

        current = self._first_number(text, self.CURRENT, _in_range(5, 200))
        if current is not None:
            specs['current'] = f"{_format_number(current)}A"

        processor = self.PROCESSOR.search(text)
        if processor:
            specs['processor'] = processor.group(1).upper()

        firmware = self.FIRMWARE.search(text)
        if firmware:
            specs['firmware'] = firmware.group(1).upper() if firmware.group(1).lower() in ('inav', 'kiss', 'am32') else firmware.group(1).title()

        for pattern in self.MOUNTING:
            match = pattern.search(text)
            if match:
                if match.lastindex == 2:
                    specs['mounting'] = f"{match.group(1)}x{match.group(2)}mm"
                else:
                    specs['mounting'] = f"{match.group(1)}mm"
                break

        for pattern in self.INPUT_VOLTAGE:
            match = pattern.search(text)
            if match:
                cells = re.sub(r'\s+', '', match.group(1))
                specs['input_voltage'] = f"{cells}S"
                break

        return specs

    def _mine_camera(self, text: str) -> Dict[str, str]:
        specs: Dict[str, str] = {}

        sensor = self.SENSOR.search(text)
        sensor_type = self.SENSOR_TYPE.search(text)
        if sensor:
            specs['sensor'] = f'{sensor.group(1)}"' + (f" {sensor_type.group(1).upper()}" if sensor_type else "")
        elif sensor_type:
            specs['sensor'] = sensor_type.group(1).upper()

        tvl = self.TVL.search(text)
        pixels = self.PIXELS.search(text)
        progressive = self.PROGRESSIVE.search(text)
        k_res = self.K_RES.search(text)
        if tvl:
            specs['resolution'] = f"{tvl.group(1)}TVL"
        elif pixels:
            specs['resolution'] = f"{pixels.group(1)}x{pixels.group(2)}"
        elif progressive:
            specs['resolution'] = f"{progressive.group(1)}p"
        elif k_res:
            specs['resolution'] = f"{k_res.group(1)}K"

        fov = self._first_number(text, self.FOV, _in_range(30, 360))
        if fov is not None:
            specs['fov'] = f"{_format_number(fov)}°"

        lens = self._first_number(text, self.LENS, _in_range(0.5, 25))
        if lens is not None:
            specs['lens'] = f"{_format_number(lens)}mm"

        fps = self._first_number(text, [self.FPS], _in_range(1, 1000))
        if fps is not None:
            specs['fps'] = f"{_format_number(fps)}fps"

        video_format = self.VIDEO_FORMAT.findall(text)
        if video_format:
            formats = sorted({value.upper() for value in video_format})
            specs['format'] = '/'.join(formats)

        return specs
