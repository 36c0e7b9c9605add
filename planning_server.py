#!/usr/bin/env python3

import argparse
import logging
from datetime import date, datetime

from flask import Flask, jsonify, request, send_file
from flask_cors import CORS

from sprint_planning.closure import linked_closure
from sprint_planning.config import load_settings
from sprint_planning.dependencies import DEFAULT_PRECEDENCE_RULES
from sprint_planning.export import planning_to_xlsx
from sprint_planning.jira import JiraClient, is_issue_key, parse_issue, parse_worklog
from sprint_planning.planner import calculate_planning
from sprint_planning.sheets import parse_employee_capacities, parse_project_configs, parse_worklog_configs

# CONFIGURATION - Load from environment variables (.env supported)
SETTINGS = load_settings()

app = Flask(__name__)
CORS(app)  # Enable CORS for all routes


class BadRequest(ValueError):
    pass


def parse_args():
    """Parse CLI arguments to optionally override environment variables."""
    parser = argparse.ArgumentParser(description='Sprint capacity planning server')
    parser.add_argument('--server_port', type=int, help='Port to run the server on (defaults to 5050 or SERVER_PORT env)')
    parser.add_argument('--jira_email', help='Jira account email (overrides JIRA_EMAIL env)')
    parser.add_argument('--jira_token', help='Jira API token (overrides JIRA_TOKEN env)')
    parser.add_argument('--jira_url', help='Base Jira URL, e.g. https://your-domain.atlassian.net (overrides JIRA_URL env)')
    parser.add_argument('--sprint_horizon', type=int, help='Number of sprints to plan ahead (overrides SPRINT_HORIZON env)')
    return parser.parse_args()


def get_jira_client():
    if not SETTINGS.jira_configured:
        return None
    return JiraClient(SETTINGS.jira_url, SETTINGS.jira_email, SETTINGS.jira_token, timeout=SETTINGS.jira_timeout)


def _parse_today(value):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise BadRequest(f'Invalid date for today: {value}')


def _parse_timestamp(value):
    if not value:
        return None
    try:
        return datetime.fromisoformat(value)
    except ValueError:
        raise BadRequest(f'Invalid timestamp: {value}')


def _parse_horizon(value):
    if value in (None, ''):
        return SETTINGS.sprint_horizon
    try:
        horizon = int(value)
    except (TypeError, ValueError):
        raise BadRequest(f'Invalid horizon: {value}')
    if horizon < 1:
        raise BadRequest(f'Horizon must be at least 1, got {horizon}')
    return horizon


def build_planning(payload):
    """Run a planning from a JSON snapshot: sheet rows for config plus raw Jira issues."""
    if not isinstance(payload, dict):
        raise BadRequest('Expected a JSON object')

    try:
        configs = parse_project_configs(payload.get('projects') or [])
        employees = parse_employee_capacities(payload.get('employees') or [])
        worklog_configs = parse_worklog_configs(payload.get('worklog_configs') or [])
        issues = [parse_issue(raw) for raw in payload.get('issues') or []]
        worklogs = [parse_worklog(raw) for raw in payload.get('worklogs') or []]
    except ValueError as e:
        raise BadRequest(str(e))

    if not configs:
        raise BadRequest('No project configuration provided')
    project_name = payload.get('project_name') or configs[0].project
    config = next((c for c in configs if c.project == project_name), None)
    if config is None:
        raise BadRequest(f'Unknown project: {project_name}')
    if not config.excluded_statuses:
        config.excluded_statuses = list(SETTINGS.excluded_statuses)
    config.sprint_length_days = SETTINGS.sprint_length_days

    return calculate_planning(
        config,
        issues,
        employees,
        worklogs=worklogs,
        worklog_configs=worklog_configs,
        today=_parse_today(payload.get('today')),
        horizon=_parse_horizon(payload.get('horizon')),
        ignored_statuses=frozenset(SETTINGS.ignored_link_statuses),
        default_start_date=SETTINGS.default_sprint_start_date,
        efficiency_start=_parse_timestamp(payload.get('efficiency_start')),
        efficiency_end=_parse_timestamp(payload.get('efficiency_end')),
    )


@app.route('/api/planning', methods=['POST'])
def get_planning():
    """Plan a project snapshot into sprints"""
    try:
        planning = build_planning(request.get_json(silent=True))
        print(f'✅ Planned {len(planning.planned_issues)} records for {planning.project}, '
              f'{len(planning.unplanned_issues)} unplanned')
        return jsonify(planning.to_dict())
    except BadRequest as e:
        return jsonify({'error': 'Invalid planning request', 'message': str(e)}), 400
    except Exception as e:
        logging.exception('Planning failed')
        return jsonify({'error': 'Planning failed', 'message': str(e)}), 500


@app.route('/api/planning/export', methods=['POST'])
def export_planning():
    """Export a planning to Excel"""
    try:
        planning = build_planning(request.get_json(silent=True))
        print(f'\n📊 Exporting planning for {planning.project} to Excel...')
        output = planning_to_xlsx(planning)
        print('✅ Excel file generated successfully')
        return send_file(
            output,
            mimetype='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet',
            as_attachment=True,
            download_name=f'planning_{planning.project}_{datetime.now().strftime("%Y-%m-%d")}.xlsx'
        )
    except BadRequest as e:
        return jsonify({'error': 'Invalid planning request', 'message': str(e)}), 400
    except Exception as e:
        print(f'❌ Export error: {str(e)}')
        logging.exception('Export failed')
        return jsonify({'error': 'Failed to export to Excel', 'message': str(e)}), 500


@app.route('/api/linked-issues/<issue_key>', methods=['GET'])
def get_linked_issues(issue_key):
    """Issues of a project reachable from issue_key over precedence links"""
    if not is_issue_key(issue_key):
        return jsonify({'error': f'Invalid issue key: {issue_key}. Expected format: PROJECT-123'}), 400
    prefixes = [p.strip() for p in request.args.get('prefix', '').split(',') if p.strip()]
    if not prefixes:
        return jsonify({'error': 'Query parameter prefix is required'}), 400

    client = get_jira_client()
    if client is None:
        return jsonify({'error': 'Jira is not configured'}), 503

    print(f'\n🔍 Resolving linked issues for {issue_key} ({", ".join(prefixes)})...')
    closure = linked_closure(
        issue_key,
        client,
        tuple(prefixes),
        exclude_subtree_root=request.args.get('exclude') or None,
        rules=DEFAULT_PRECEDENCE_RULES,
        ignored_statuses=frozenset(SETTINGS.ignored_link_statuses),
    )
    print(f'✅ Found {len(closure.issues)} linked issues, {len(closure.omitted)} omitted')
    return jsonify({
        'issue': issue_key,
        'issues': [
            {'key': i.key, 'summary': i.summary, 'status': i.status, 'type': i.issue_type, 'parent': i.parent_key}
            for i in closure.issues
        ],
        'omitted': closure.omitted,
    })


@app.route('/api/config', methods=['GET'])
def get_config():
    """Get public configuration"""
    return jsonify({
        'jiraUrl': SETTINGS.jira_url,
        'sprintHorizon': SETTINGS.sprint_horizon,
        'sprintLengthDays': SETTINGS.sprint_length_days,
        'defaultSprintStartDate': SETTINGS.default_sprint_start_date.isoformat(),
    })


@app.route('/health', methods=['GET'])
def health_check():
    """Health check endpoint"""
    return jsonify({
        'status': 'OK',
        'message': 'Planning server is running'
    })


if __name__ == '__main__':
    args = parse_args()
    logging.basicConfig(level=logging.INFO, format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    # Apply CLI overrides while keeping env defaults as fallbacks
    if args.jira_url:
        SETTINGS.jira_url = args.jira_url
    if args.jira_email:
        SETTINGS.jira_email = args.jira_email
    if args.jira_token:
        SETTINGS.jira_token = args.jira_token
    if args.sprint_horizon:
        SETTINGS.sprint_horizon = args.sprint_horizon
    if args.server_port:
        SETTINGS.server_port = args.server_port

    if not SETTINGS.jira_configured:
        print('\n⚠️ JIRA_URL, JIRA_EMAIL and JIRA_TOKEN are not set; /api/linked-issues is disabled.')

    print('\n🚀 Planning Server starting...')
    print(f'🔗 Jira URL: {SETTINGS.jira_url}')
    print(f'📅 Sprint horizon: {SETTINGS.sprint_horizon} sprints of {SETTINGS.sprint_length_days} days')
    print('\n📋 Endpoints:')
    print(f'   • http://localhost:{SETTINGS.server_port}/api/planning - Plan a project snapshot (POST)')
    print(f'   • http://localhost:{SETTINGS.server_port}/api/planning/export - Export planning to Excel (POST)')
    print(f'   • http://localhost:{SETTINGS.server_port}/api/linked-issues/<key>?prefix=ABC - Linked issues')
    print(f'   • http://localhost:{SETTINGS.server_port}/health - Health check')
    print('\n✅ Server ready!\n')

    app.run(host='0.0.0.0', port=SETTINGS.server_port, debug=True)
