# Collection Names
COLLECTIONS = {
    'users': 'users',
    'members': 'members',
    'complaints': 'complaints',
    'visitors': 'visitors',
    'gate_passes': 'gate_passes',
    'events': 'events',
    'maintenance': 'maintenance',
    'payments': 'payments',
    'announcements': 'announcements',
    'polls': 'polls',
    'security_logs': 'security_logs',
    'documents': 'documents',
    'guards': 'guards',
    'deliveries': 'deliveries',
    'alerts': 'alerts',
}

# Collection Structure Documentation
#   owner_field: field holding the uid of the resident who owns a record;
#                residents only ever see/modify their own rows in these collections
#   order_by:    default sort for list screens (newest first)
#   form:        validation schema used when records are created through the API
COLLECTION_SCHEMAS = {
    'users': {
        'fields': ['name', 'email', 'phone', 'role', 'apartment', 'wing', 'createdAt'],
        'owner_field': None,
        'order_by': None,
        'form': None,
    },
    'members': {
        'fields': ['name', 'email', 'phone', 'unit', 'role', 'status', 'createdAt', 'updatedAt'],
        'owner_field': None,
        'order_by': 'createdAt',
        'form': 'member',
    },
    'complaints': {
        'fields': ['title', 'description', 'category', 'priority', 'status', 'submittedBy', 'createdAt', 'updatedAt'],
        'owner_field': 'submittedBy',
        'order_by': 'createdAt',
        'form': 'complaint',
    },
    'visitors': {
        'fields': ['name', 'purpose', 'flatNumber', 'vehicleNumber', 'status', 'submittedBy', 'visitDate', 'createdAt'],
        'owner_field': 'submittedBy',
        'order_by': 'createdAt',
        'form': 'visitor',
    },
    'gate_passes': {
        'fields': ['visitorName', 'flatNumber', 'issueDate', 'validUntil', 'submittedBy', 'createdAt'],
        'owner_field': 'submittedBy',
        'order_by': 'createdAt',
        'form': None,
    },
    'events': {
        'fields': ['title', 'description', 'date', 'location', 'attendees', 'createdBy', 'createdAt'],
        'owner_field': None,
        'order_by': 'createdAt',
        'form': None,
    },
    'maintenance': {
        'fields': ['month', 'amount', 'dueDate', 'status', 'units', 'notes', 'createdAt'],
        'owner_field': None,
        'order_by': 'createdAt',
        'form': None,
    },
    'payments': {
        'fields': ['month', 'amount', 'status', 'due', 'date', 'userId'],
        'owner_field': 'userId',
        'order_by': None,
        'form': None,
    },
    'announcements': {
        'fields': ['title', 'content', 'priority', 'createdBy', 'createdAt'],
        'owner_field': None,
        'order_by': 'createdAt',
        'form': None,
    },
    'polls': {
        'fields': ['question', 'options', 'expiresAt', 'createdBy', 'createdAt'],
        'owner_field': None,
        'order_by': 'createdAt',
        'form': None,
    },
    'security_logs': {
        'fields': ['action', 'guardId', 'details', 'createdAt'],
        'owner_field': None,
        'order_by': 'createdAt',
        'form': None,
    },
    'documents': {
        'fields': ['title', 'category', 'fileUrl', 'expiryDate', 'archived', 'submittedBy', 'createdAt'],
        'owner_field': 'submittedBy',
        'order_by': 'createdAt',
        'form': None,
    },
    'guards': {
        'fields': ['name', 'contact', 'shift', 'status', 'createdAt'],
        'owner_field': None,
        'order_by': None,
        'form': 'guard',
    },
    'deliveries': {
        'fields': ['recipientName', 'flatNumber', 'itemDescription', 'deliveryPerson', 'contactNumber', 'submittedBy', 'timestamp', 'createdAt'],
        'owner_field': 'submittedBy',
        'order_by': 'createdAt',
        'form': 'delivery',
    },
    'alerts': {
        'fields': ['message', 'priority', 'type', 'createdBy', 'createdAt'],
        'owner_field': None,
        'order_by': 'createdAt',
        'form': 'alert',
    },
}
