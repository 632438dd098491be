# Command-line entry point for running a bracket from YAML files

import argparse
import logging
import os
import sys

import yaml
from contest.builder import parse_field
from contest.engine import ContestEngine
from contest.errors import ContestError
from contest.repository import YamlRepository
from contest.settings import load_settings


def load_contestants(file_path):
    with open(file_path, mode='r', encoding='utf-8') as file:
        return parse_field(yaml.safe_load(file))


def make_engine(data_dir, lock_timeout=10):
    repository = YamlRepository(data_dir, lock_timeout)
    return ContestEngine(repository, settings_loader=lambda tid: load_settings(repository.tournament_dir(tid)))


def _name(contestant):
    if not contestant:
        return "TBD"
    return f"({contestant['seed']}) {contestant['name']}"


def print_bracket(bracket):
    print(f"\n--- Tournament {bracket['tournament_id']} [{bracket['status']}] ---")
    for round_data in bracket['rounds']:
        print(f"\n{round_data['name']} [{round_data['status']}]")
        for matchup in round_data['matchups']:
            line = f"  {matchup['position']:>2}. {_name(matchup['contestant_a'])} vs {_name(matchup['contestant_b'])}"
            tally = matchup['tally']
            if tally and tally['total']:
                line += f"  {tally['count_a']}-{tally['count_b']}"
            if matchup['winner_id']:
                line += f"  -> {matchup['winner_id']}"
            print(line)
    if bracket['champion']:
        print(f"\nChampion: {bracket['champion']['name']}")


def build_parser():
    parser = argparse.ArgumentParser(description='Run a bracket popularity contest from YAML files.')
    parser.add_argument('--data-dir', default=os.environ.get('TOURNAMENT_DATA_DIR', os.path.join(
        os.path.dirname(os.path.dirname(os.path.abspath(__file__))), 'data')))
    parser.add_argument('--tournament', default='default', help='Tournament id (directory name)')
    parser.add_argument('-v', '--verbose', action='store_true')
    sub = parser.add_subparsers(dest='command', required=True)

    build = sub.add_parser('build', help='Build the bracket from a contestants file')
    build.add_argument('contestants_file', nargs='?',
                       help='Defaults to contestants.yaml in the tournament directory')
    sub.add_parser('show', help='Print the bracket')
    advance = sub.add_parser('advance', help='Close the active round and advance it')
    advance.add_argument('--policy', help='Tie-break policy: favor-higher-seed or favor-contestant-a')
    sub.add_parser('reset', help='Delete all rounds, matchups and votes')
    sub.add_parser('delete', help='Remove the stored bracket and field')
    sub.add_parser('stats', help='Print vote and completion statistics')
    return parser


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s %(name)s: %(message)s')

    engine = make_engine(args.data_dir)
    tournament = args.tournament

    try:
        if args.command == 'build':
            contestants_file = args.contestants_file or os.path.join(
                engine.repository.tournament_dir(tournament), 'contestants.yaml')
            if not os.path.exists(contestants_file):
                print(f"No contestants found. Check {contestants_file}", file=sys.stderr)
                return 1
            print_bracket(engine.build(tournament, load_contestants(contestants_file)))
        elif args.command == 'show':
            print_bracket(engine.bracket(tournament))
        elif args.command == 'advance':
            result = engine.force_advance(tournament, args.policy)
            print(f"{result['round_name']}: {result['winners_declared']} winners declared, "
                  f"{result['ties_resolved']} ties resolved")
            print_bracket(engine.bracket(tournament))
        elif args.command == 'reset':
            removed = engine.reset_tournament(tournament)
            print(f"Removed {removed['rounds']} rounds, {removed['matchups']} matchups, {removed['votes']} votes")
        elif args.command == 'delete':
            engine.delete_tournament(tournament)
            print(f"Deleted tournament {tournament}")
        elif args.command == 'stats':
            for key, value in engine.stats(tournament).items():
                print(f"{key}: {value}")
    except ContestError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 2
    return 0


if __name__ == '__main__':
    sys.exit(main())
