from flask import Blueprint, Response, current_app, jsonify, request

from utils import request_payload, token_required
from utils.roster import RosterStore
from utils.stats import compute_roster_stats

student_bp = Blueprint('students', __name__, url_prefix='/api/students')


def _store() -> RosterStore:
    return current_app.extensions['roster_store']


@student_bp.route('', methods=['GET'])
@token_required
def list_students():
    students = _store().list_all()
    current_app.logger.info('Retrieved %d students', len(students))
    return jsonify({'success': True, 'count': len(students), 'students': [s.to_dict() for s in students]})


@student_bp.route('', methods=['POST'])
@token_required
def add_student():
    student, total = _store().add(request_payload())
    current_app.logger.info('Student %r added (id=%s). Total students: %d', student.name, student.id, total)
    return jsonify({
        'success': True,
        'message': 'Student added successfully',
        'student': student.to_dict(),
        'totalStudents': total,
    })


@student_bp.route('/export', methods=['GET'])
@token_required
def export_students():
    export = _store().export(request.args.get('format', 'xlsx'))
    current_app.logger.info('Exported students as %s', export.filename)
    return Response(export.content, mimetype=export.mimetype, headers={
        'Content-Disposition': f'attachment; filename="{export.filename}"',
    })


@student_bp.route('/stats', methods=['GET'])
@token_required
def student_stats():
    return jsonify({'success': True, 'stats': compute_roster_stats(_store().list_all())})


@student_bp.route('/search', methods=['GET'])
@token_required
def search_students():
    query = request.args.get('query', request.args.get('q', ''))
    results = _store().search(query)
    return jsonify({
        'success': True,
        'query': query,
        'count': len(results),
        'students': [s.to_dict() for s in results],
    })


@student_bp.route('/<int:student_id>', methods=['GET'])
@token_required
def get_student(student_id: int):
    return jsonify({'success': True, 'student': _store().get(student_id).to_dict()})


@student_bp.route('/<int:student_id>', methods=['PUT', 'PATCH'])
@token_required
def update_student(student_id: int):
    student = _store().update(student_id, request_payload())
    current_app.logger.info('Student %s updated', student_id)
    return jsonify({'success': True, 'message': 'Student updated successfully', 'student': student.to_dict()})


@student_bp.route('/<int:student_id>', methods=['DELETE'])
@token_required
def delete_student(student_id: int):
    remaining = _store().remove(student_id)
    current_app.logger.info('Student %s deleted. Remaining: %d', student_id, remaining)
    return jsonify({'success': True, 'message': 'Student deleted successfully', 'totalStudents': remaining})
