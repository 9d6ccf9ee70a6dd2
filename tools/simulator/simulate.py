#!/usr/bin/env python3
"""GeoCompass session simulator.

Plays complete multiplayer games against a running server: one host creates
a session, the others join, the host picks a mode and drives the rounds while
everyone submits guesses from a position scattered around a center.

Usage:
    # 3 games of 4 players on the WORLD pack
    python -m tools.simulator.simulate --server http://localhost:8000 --games 3 --players 4

    # Near Me games around Paris, 5 rounds each
    python -m tools.simulator.simulate --mode NEAR_ME --rounds 5 --center 48.8566,2.3522
"""

from __future__ import annotations

import argparse
import asyncio
import math
import random
import time
import uuid
from dataclasses import dataclass

import httpx


@dataclass
class SimPlayer:
    uid: str
    name: str
    lat: float
    lon: float
    aim_error_deg: float
    score: int = 0
    guesses_sent: int = 0
    errors: int = 0

    @property
    def headers(self) -> dict:
        return {"X-Player-Id": self.uid, "X-Player-Name": self.name}

    @property
    def position(self) -> dict:
        return {"latitude": self.lat, "longitude": self.lon}


def initial_bearing(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle bearing, so simulated players aim roughly right."""
    p1, p2 = math.radians(lat1), math.radians(lat2)
    dlon = math.radians(lon2 - lon1)
    y = math.sin(dlon) * math.cos(p2)
    x = math.cos(p1) * math.sin(p2) - math.sin(p1) * math.cos(p2) * math.cos(dlon)
    return (math.degrees(math.atan2(y, x)) + 360) % 360


def scatter(center_lat: float, center_lon: float, radius_km: float) -> tuple[float, float]:
    angle = random.uniform(0, 2 * math.pi)
    dist_km = random.uniform(0, radius_km)
    lat = center_lat + (dist_km / 111.0) * math.cos(angle)
    lon = center_lon + (dist_km / (111.0 * math.cos(math.radians(center_lat)))) * math.sin(angle)
    return lat, lon


async def guess(client: httpx.AsyncClient, server: str, code: str, player: SimPlayer) -> None:
    resp = await client.get(f"{server}/api/v1/sessions/{code}/view", headers=player.headers)
    view = resp.json()
    if view.get("phase") != "playing":
        return
    target = view["target"]["coordinates"]
    aim = initial_bearing(player.lat, player.lon, target["latitude"], target["longitude"])
    angle = (aim + random.gauss(0, player.aim_error_deg)) % 360

    try:
        resp = await client.post(
            f"{server}/api/v1/sessions/{code}/guesses",
            headers=player.headers,
            json={"round": view["current_round"], "angle": angle, "position": player.position},
        )
    except httpx.RequestError:
        player.errors += 1
        return
    if resp.status_code == 200:
        player.guesses_sent += 1
        player.score = resp.json()["score"]
    else:
        player.errors += 1


async def play_game(client: httpx.AsyncClient, args: argparse.Namespace, players: list[SimPlayer]) -> str:
    """One full game. Returns the session code."""
    host, *others = players
    server = args.server

    resp = await client.post(f"{server}/api/v1/sessions", headers=host.headers)
    resp.raise_for_status()
    code = resp.json()["code"]

    await asyncio.gather(*(
        client.post(f"{server}/api/v1/sessions/{code}/join", headers=p.headers) for p in others
    ))
    (await client.post(f"{server}/api/v1/sessions/{code}/start", headers=host.headers)).raise_for_status()

    body = {"mode_id": args.mode, "rounds": args.rounds}
    if args.mode.upper() == "NEAR_ME":
        body["near_me"] = {"radius_km": args.radius_km, "rounds": args.rounds or 7}
        body["center"] = host.position
    resp = await client.post(f"{server}/api/v1/sessions/{code}/mode", headers=host.headers, json=body)
    resp.raise_for_status()
    total_rounds = len(resp.json()["fixed_location_set"])

    for round_number in range(total_rounds):
        resp = await client.post(
            f"{server}/api/v1/sessions/{code}/advance",
            headers=host.headers,
            json={"from_round": round_number},
        )
        resp.raise_for_status()
        await asyncio.gather(*(guess(client, server, code, p) for p in players))
        if args.think_seconds:
            await asyncio.sleep(args.think_seconds)

    await client.post(f"{server}/api/v1/sessions/{code}/end", headers=host.headers)
    return code


async def run_simulation(args: argparse.Namespace) -> None:
    """Run the full simulation."""
    center_lat, center_lon = args.center
    games = []
    for _ in range(args.games):
        players = []
        for i in range(args.players):
            lat, lon = scatter(center_lat, center_lon, args.radius_km)
            players.append(SimPlayer(
                uid=str(uuid.uuid4()),
                name=f"Player {i + 1}",
                lat=lat,
                lon=lon,
                aim_error_deg=random.uniform(5, 60),
            ))
        games.append(players)

    print(f"Starting simulation: {args.games} games x {args.players} players")
    print(f"  Mode: {args.mode}  Rounds: {args.rounds or 'all'}")
    print(f"  Center: {center_lat:.4f}, {center_lon:.4f}")
    print(f"  Server: {args.server}")
    print()

    start = time.monotonic()

    async with httpx.AsyncClient(timeout=10.0) as client:
        results = await asyncio.gather(
            *(play_game(client, args, players) for players in games),
            return_exceptions=True,
        )

        elapsed = time.monotonic() - start
        for players, outcome in zip(games, results):
            if isinstance(outcome, Exception):
                print(f"  game failed: {outcome}")
                continue
            best = max(players, key=lambda p: p.score)
            print(f"  {outcome}: winner {best.name} with {best.score} points")

        all_players = [p for players in games for p in players]
        total_guesses = sum(p.guesses_sent for p in all_players)
        total_errors = sum(p.errors for p in all_players)

        print(f"\nSimulation complete in {elapsed:.1f}s")
        print(f"  Total guesses sent: {total_guesses}")
        print(f"  Total errors: {total_errors}")

        # Check server stats
        try:
            resp = await client.get(f"{args.server}/api/v1/stats")
        except httpx.RequestError:
            return
        if resp.status_code == 200:
            stats = resp.json()
            print("\nServer stats:")
            print(f"  Sessions created: {stats['sessions_created']}")
            print(f"  Rounds advanced: {stats['rounds_advanced']}")
            print(f"  Guesses accepted: {stats['guesses_accepted']}")
            print(f"  Active players: {stats['active_players']['total']}")


def main():
    parser = argparse.ArgumentParser(description="GeoCompass session simulator")
    parser.add_argument("--server", default="http://localhost:8000", help="Server URL")
    parser.add_argument("--games", type=int, default=1, help="Number of concurrent games")
    parser.add_argument("--players", type=int, default=3, help="Players per game (host included)")
    parser.add_argument("--mode", default="WORLD", help="Mode id: a pack, a custom mode id or NEAR_ME")
    parser.add_argument("--rounds", type=int, default=None, help="Limit rounds per game")
    parser.add_argument("--center", type=str, default="48.8566,2.3522",
                        help="Center lat,lon (default: Paris)")
    parser.add_argument("--radius-km", type=float, default=3.0, help="Player scatter / Near Me radius in km")
    parser.add_argument("--think-seconds", type=float, default=0.0, help="Pause between rounds")

    args = parser.parse_args()

    # Parse center
    lat, lon = args.center.split(",")
    args.center = (float(lat), float(lon))

    asyncio.run(run_simulation(args))


if __name__ == "__main__":
    main()
