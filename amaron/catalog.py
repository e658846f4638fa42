"""
Static vehicle catalog for direct-URL mode, and the combinations CSV shared by the
discover-only and from-CSV modes.

Direct mode visits the full cross-product vehicle type x brand x model x fuel type. Most of
those URLs do not exist; the pipeline counts them as empty combinations.
"""
import csv
import logging
from pathlib import Path

from amaron.models import Combination

logger = logging.getLogger("amaron.catalog")

VEHICLE_TYPES = [
    "Two Wheelers",
    "Three Wheelers",
    "Passengers",
    "Commercial",
    "Farm Vehicles",
    "Earth Moving Equipment",
    "Genset",
]

BRANDS_BY_VEHICLE_TYPE = {
    "Two Wheelers": [
        "BAJAJ", "BENELLI", "HERO", "HONDA", "IDEAL JAWA LTD", "JAWA",
        "KANDA", "KINETIC", "LML", "MAHINDRA & MAHINDRA", "PIAGGIO",
        "ROYAL ENFIELD", "SUZUKI", "TVS", "YAMAHA",
    ],
    "Three Wheelers": [
        "ATUL (ATUL AUTO)", "BAJAJ", "FORCE", "KRANTI", "KUMAR MOTORS",
        "LOTIA MOTORS", "M&M", "MLR MOTORS", "PANCHNATH AUTO", "PIAGGIO",
        "RASANDIK", "TVS", "VIKRAM",
    ],
    "Passengers": [
        "ASHOK LEYLAND", "AUDI", "BAJAJ", "BMW", "CHEVROLET (GENERAL MOTORS)",
        "DAEWOO", "FIAT", "FORCE", "FORD", "HINDUSTAN MOTORS", "HONDA",
        "HYUNDAI", "ICML", "ISUZU", "JAGUAR", "JEEP", "KIA", "MAHINDRA & MAHINDRA",
        "MARUTI SUZUKI", "MERCEDES BENZ", "MG", "NISSAN", "OPEL (GENERAL MOTORS)",
        "PCA Automobiles India Private Limited", "PORCHE", "PREMIER", "RENAULT",
        "SKODA", "TATA", "TOYOTA", "VOLKSWAGEN", "VOLVO",
    ],
    "Commercial": [
        "ASHOK LEYLAND", "BAJAJ", "EICHER", "FORCE", "ISUZU", "MAHINDRA & MAHINDRA",
        "TATA", "VOLVO",
    ],
    "Farm Vehicles": [
        "EICHER", "ESCORTS", "FORCE", "JOHN DEERE", "MAHINDRA & MAHINDRA",
        "NEW HOLLAND", "SONALIKA", "SWARAJ", "TAFE",
    ],
    "Earth Moving Equipment": [
        "BEML", "CATERPILLAR", "HITACHI", "JCB", "KOMATSU", "L&T", "TATA",
    ],
    "Genset": [
        "ASHOK LEYLAND", "CATERPILLAR", "CUMMINS", "EICHER", "KIRLOSKAR",
        "MAHINDRA & MAHINDRA", "SIMPSON",
    ],
}

# One shared pool; models are not tied to brands here.
COMMON_MODELS = [
    # Two wheelers
    "4S Champion (KS)", "Aspire (KS)", "Avenger 150 (ES)", "Avenger 160 Street (ES)",
    "Avenger 180 (ES)", "Avenger 200 (ES)", "Avenger 220 Cruise (ES)", "BM 100 (ES)",
    "BM 100 (KS)", "BM 125 (ES)", "BM 125X (ES)", "BM 150 Alloy (ES)", "BM 150 F1 (ES)",
    "BM 150 FF Roade (ES)", "BM 150 Spoke (KS)", "BYK 92 (KS)", "Boxer (KS)",
    "Boxer 100S Alloy (ES)", "Boxer 101S Spoke (ES)", "Bravo (ES)", "CT 100 (KS)",
    "CT 100 Alloy (ES)", "CT 100 Spoke (ES)", "CT 100B (ES)", "CT 110 (ES)",
    "CT 125 (ES)", "Caliber (KS)", "Chetak (KS)", "Classic SL125 (KS)", "Croma (KS)",
    "Discover (KS)", "Discover 100 (ES)", "Discover 125 Drum/Disc (ES)", "Discover 135 (KS)",
    "Discover 150 F Disc (ES)", "Discover 150S Drum/Disc (ES)", "Dominar 250 (ES)",
    "Dominar 400 (ES)", "Dominar K10 (ES)", "Eliminator (ES)", "Freedom CNG",
    "KB 125/4S (KS)", "KTM 125 (ES)", "KTM 200 (ES)", "KTM 250 (ES)", "KTM 390 (ES)",
    "KTM Duke 200 (ES)", "Kristal (ES)", "Platina (KS)", "Platina 100 (KS)",
    "Platina 1000 UG (ES)", "Platina 1000B LES (ES)", "Platina 110H Gear (ES)",
    "Pulsar 125 (ES)", "Pulsar 125 Neon (ES)", "Pulsar 135 LS (ES)", "Pulsar 150 (ES)",
    "Pulsar 150 Neon (ES)", "Pulsar 150 Twin Disc (ES)", "Pulsar 180F Neon (ES)",
    "Pulsar 220 F (ES)", "Pulsar 250", "Pulsar N125", "Pulsar NS 160 (ES)",
    "Pulsar NS 200 (ES)", "Pulsar NS 400Z(ES)", "Pulsar RS 200 (ES)", "RTZ125 (KS)",
    "Saffire (ES)", "Sonic 110 (KS)", "Spirit (ES)", "V12 Drum/Disc (ES)", "V15 (ES)",
    "Wave (ES)", "Wind 125 (KS)", "XCD135 (KS)",
    # Passenger cars
    "Stile", "A3", "A4", "A6", "A8", "Q3", "Q5", "Q7", "X1", "X3", "X5", "X6",
    "Beat", "Cruze", "Sail", "Spark", "Tavera", "Matiz", "Nexia", "Cielo",
    "Linea", "Palio", "Punto", "Uno", "Trax", "Ecosport", "Endeavour", "Fiesta",
    "Figo", "Ikon", "Ambassador", "Contessa", "Accord", "Amaze", "Brio", "City",
    "Civic", "CR-V", "Jazz", "Accent", "Creta", "Elite i20", "Eon", "Elantra",
    "Fluidic Verna", "Getz", "Grand i10", "i10", "i20", "Santro", "Sonata",
    "Tucson", "Verna", "Xcent", "Carens", "Rio", "Seltos", "Sonet", "Bolero",
    "KUV100", "Logan", "Marazzo", "Quanto", "Scorpio", "TUV300", "Verito", "XUV300",
    "XUV500", "Xylo", "Alto", "Alto 800", "Alto K10", "Baleno", "Celerio", "Ciaz",
    "Dzire", "Ertiga", "Esteem", "Ignis", "Omni", "Ritz", "S-Cross", "Swift",
    "Vitara Brezza", "Wagon R", "Zen", "A-Class", "B-Class", "C-Class", "CLA",
    "CLS", "E-Class", "G-Class", "GLA", "GLC", "GLE", "GLS", "ML-Class", "S-Class",
    "Hector", "ZS EV", "Micra", "Sunny", "Terrano", "Corsa", "Duster", "Fluence",
    "Koleos", "Kwid", "Pulse", "Triber", "Fabia", "Laura", "Octavia", "Rapid",
    "Superb", "Yeti", "Aria", "Bolt", "Harrier", "Hexa", "Indica", "Indigo",
    "Manza", "Nano", "Nexon", "Safari", "Sumo", "Tiago", "Tigor", "Zest",
    "Camry", "Corolla", "Etios", "Fortuner", "Innova", "Prius", "Yaris",
    "Ameo", "Beetle", "Jetta", "Passat", "Polo", "Tiguan", "Touareg", "Vento",
    "S60", "S80", "S90", "V40", "V60", "V90", "XC40", "XC60", "XC90",
    # Three wheelers
    "Atul Shakti - Pick up van standard", "GEM Cargo/CargoXL", "GEM PAXX", "GEMI Pass",
    "RIK +", "Shakti Chicken Carrier", "Shakti Delivery Van", "Shakti Passenger Carrier",
    "Shakti Pick up van standard", "Shakti Pick up-Highdesk", "Shakti Pick-up Highdesk",
    "Shakti Soft  Drink Carrier", "Shakti Tipper", "Shakti Water tank Carrier",
    "Shakti smart Pick up van", "RE Compact", "RE Maxima", "RE Maxima C", "Minidor",
    "Trax Cruiser", "Trax Toofan",
]

FUEL_TYPES = ["Petrol", "Diesel", "CNG", "Electric"]

COMBINATION_FIELDS = list(Combination._fields)


def generate_combinations(
    vehicle_types=None,
    brands_by_vehicle_type=None,
    models=None,
    fuel_types=None,
) -> list[Combination]:
    """Cross-product of the static catalog, vehicle type major, fuel type minor."""
    vehicle_types = VEHICLE_TYPES if vehicle_types is None else vehicle_types
    brands_by_vehicle_type = BRANDS_BY_VEHICLE_TYPE if brands_by_vehicle_type is None else brands_by_vehicle_type
    models = COMMON_MODELS if models is None else models
    fuel_types = FUEL_TYPES if fuel_types is None else fuel_types
    return [
        Combination(vehicle_type, brand, model, fuel_type)
        for vehicle_type in vehicle_types
        for brand in brands_by_vehicle_type.get(vehicle_type, [])
        for model in models
        for fuel_type in fuel_types
    ]


def write_combinations_csv(combinations: list[Combination], path: Path) -> int:
    """Write vehicle_type,brand,model,fuel_type rows. Returns count written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as f:
        w = csv.DictWriter(f, fieldnames=COMBINATION_FIELDS)
        w.writeheader()
        w.writerows(c._asdict() for c in combinations)
    return len(combinations)


def load_combinations_csv(path: Path) -> list[Combination]:
    """Load combinations written by write_combinations_csv. Rows missing any level are skipped."""
    path = Path(path)
    if not path.exists():
        return []
    out = []
    with open(path, newline="", encoding="utf-8") as f:
        for line_no, row in enumerate(csv.DictReader(f), start=2):
            values = [(row.get(name) or "").strip() for name in COMBINATION_FIELDS]
            if not all(values):
                logger.debug("Skipping incomplete row %d in %s", line_no, path)
                continue
            out.append(Combination(*values))
    return out
