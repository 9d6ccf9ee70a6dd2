"""Built-in location packs.

WORLD is the classic landmark set; the continent packs back the map picker.
Order matters: round n of a session uses index n-1.
"""

from __future__ import annotations

from geocompass.core.models import Coordinate, GameMode, Location


def _pack(mode_id: str, name: str, entries: list[tuple[str, float, float]]) -> GameMode:
    return GameMode(
        id=mode_id,
        name=name,
        locations=[Location(name=n, coordinates=Coordinate(lat, lon)) for n, lat, lon in entries],
    )


BUILT_IN_PACKS: dict[str, GameMode] = {
    pack.id: pack
    for pack in [
        _pack("WORLD", "World Landmarks", [
            ("Eiffel Tower", 48.8584, 2.2945),
            ("Statue of Liberty", 40.6892, -74.0445),
            ("Great Wall of China", 40.4319, 116.5704),
            ("Taj Mahal", 27.1751, 78.0421),
            ("Sydney Opera House", -33.8568, 151.2153),
            ("Pyramids of Giza", 29.9792, 31.1342),
            ("Colosseum", 41.8902, 12.4922),
            ("Machu Picchu", -13.1631, -72.5450),
        ]),
        _pack("EUROPE", "Europe", [
            ("Big Ben", 51.5007, -0.1246),
            ("Sagrada Familia", 41.4036, 2.1744),
            ("Brandenburg Gate", 52.5163, 13.3777),
            ("Acropolis of Athens", 37.9715, 23.7257),
            ("Leaning Tower of Pisa", 43.7230, 10.3966),
            ("Red Square", 55.7539, 37.6208),
            ("Neuschwanstein Castle", 47.5576, 10.7498),
        ]),
        _pack("ASIA", "Asia", [
            ("Mount Fuji", 35.3606, 138.7274),
            ("Angkor Wat", 13.4125, 103.8670),
            ("Burj Khalifa", 25.1972, 55.2744),
            ("Forbidden City", 39.9163, 116.3972),
            ("Petronas Towers", 3.1579, 101.7116),
            ("Mount Everest", 27.9881, 86.9250),
            ("Marina Bay Sands", 1.2834, 103.8607),
        ]),
        _pack("AFRICA", "Africa", [
            ("Table Mountain", -33.9628, 18.4098),
            ("Mount Kilimanjaro", -3.0674, 37.3556),
            ("Victoria Falls", -17.9243, 25.8572),
            ("Great Sphinx of Giza", 29.9753, 31.1376),
            ("Hassan II Mosque", 33.6086, -7.6327),
            ("Serengeti National Park", -2.3333, 34.8333),
            ("Lalibela Churches", 12.0317, 39.0411),
        ]),
        _pack("NORTH_AMERICA", "North America", [
            ("Golden Gate Bridge", 37.8199, -122.4783),
            ("Grand Canyon", 36.1069, -112.1129),
            ("CN Tower", 43.6426, -79.3871),
            ("Chichen Itza", 20.6843, -88.5678),
            ("Niagara Falls", 43.0962, -79.0377),
            ("Mount Rushmore", 43.8791, -103.4591),
            ("Panama Canal", 9.0800, -79.6800),
        ]),
        _pack("SOUTH_AMERICA", "South America", [
            ("Christ the Redeemer", -22.9519, -43.2105),
            ("Iguazu Falls", -25.6953, -54.4367),
            ("Galapagos Islands", -0.9538, -90.9656),
            ("Salar de Uyuni", -20.1338, -67.4891),
            ("Angel Falls", 5.9701, -62.5362),
            ("Perito Moreno Glacier", -50.4967, -73.1377),
            ("Easter Island Moai", -27.1127, -109.3497),
        ]),
        _pack("OCEANIA", "Oceania", [
            ("Uluru", -25.3444, 131.0369),
            ("Great Barrier Reef", -18.2871, 147.6992),
            ("Milford Sound", -44.6414, 167.8974),
            ("Bondi Beach", -33.8908, 151.2743),
            ("Hobbiton", -37.8721, 175.6829),
            ("Bora Bora", -16.5004, -151.7415),
            ("Twelve Apostles", -38.6621, 143.1051),
        ]),
    ]
}
