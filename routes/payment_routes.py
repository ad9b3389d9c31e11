from datetime import datetime, timezone

from flask import Blueprint, Response, current_app, g, jsonify, url_for

from utils import request_payload, token_required
from utils.errors import StorageError
from utils.receipts import ReceiptService
from utils.stats import compute_receipt_stats

payment_bp = Blueprint('payments', __name__, url_prefix='/api/payments')


def _receipts() -> ReceiptService:
    return current_app.extensions['receipt_service']


def _pdf_response(receipt_id: str, disposition: str) -> Response:
    path = _receipts().locate_document(receipt_id)
    try:
        pdf = path.read_bytes()
    except OSError as exc:
        current_app.logger.exception('Error reading receipt %s', path)
        raise StorageError.wrap('Error serving receipt', exc) from exc
    current_app.logger.info('Serving receipt %s (%s)', path.name, disposition)
    return Response(pdf, mimetype='application/pdf', headers={
        'Content-Disposition': f'{disposition}; filename="{path.name}"',
    })


@payment_bp.route('', methods=['POST'])
@token_required
def create_payment():
    """Record a payment by issuing a PDF receipt and a ledger entry."""
    receipt = _receipts().generate(request_payload(), issuer=g.identity)
    current_app.logger.info(
        'Payment processed: %s for %s (%s)', receipt.receipt_id, receipt.student_name, receipt.amount
    )
    return jsonify({
        'success': True,
        'message': 'Payment processed successfully',
        'receiptId': receipt.receipt_id,
        'receiptUrl': url_for('payments.download_receipt', receipt_id=receipt.receipt_id),
        'viewUrl': url_for('payments.view_receipt', receipt_id=receipt.receipt_id),
        'studentId': receipt.student_id,
        'studentName': receipt.student_name,
        'studentEmail': receipt.student_email,
        'amount': receipt.amount,
        'description': receipt.description,
        'timestamp': datetime.now(timezone.utc).isoformat(),
    })


@payment_bp.route('/download/<receipt_id>', methods=['GET'])
@token_required
def download_receipt(receipt_id: str):
    return _pdf_response(receipt_id, 'attachment')


# Alternate download path kept for older clients
@payment_bp.route('/receipt/<receipt_id>', methods=['GET'])
@token_required
def direct_receipt(receipt_id: str):
    return _pdf_response(receipt_id, 'attachment')


@payment_bp.route('/view/<receipt_id>', methods=['GET'])
@token_required
def view_receipt(receipt_id: str):
    return _pdf_response(receipt_id, 'inline')


@payment_bp.route('/send-receipt', methods=['POST'])
@token_required
def send_receipt():
    data = request_payload()
    notifier = current_app.extensions['notifier']
    result = notifier.send(data.get('receiptId'), data.get('studentEmail'), data.get('studentName'))
    email = str(data.get('studentEmail') or '').strip()
    return jsonify({
        'success': True,
        'message': f'Receipt sent successfully to {email}',
        'receiptId': data.get('receiptId'),
        'studentEmail': email,
        'delivered': result.delivered,
        'simulated': result.simulated,
    })


@payment_bp.route('/list', methods=['GET'])
@token_required
def list_receipts():
    receipts = _receipts().list_receipts()
    return jsonify({'success': True, 'count': len(receipts), 'receipts': receipts})


@payment_bp.route('/stats', methods=['GET'])
@token_required
def receipt_stats():
    return jsonify({'success': True, 'stats': compute_receipt_stats(_receipts().ledger.list_all())})
